"""Configuration models and YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("drivemirror.yaml")


class AuthConfig(BaseModel):
    kind: Literal["oauth", "service_account"] = "oauth"
    client_secrets_file: str = "client_secret.json"
    token_file: str = "token.json"
    service_account_file: str = ""
    scopes: list[str] = Field(
        default_factory=lambda: ["https://www.googleapis.com/auth/drive"]
    )


class DriveConfig(BaseModel):
    # Empty means: use the first parentless folder the credentials can see.
    root_folder_id: str = ""
    timeout_sec: float = Field(default=60.0, gt=0)
    supports_all_drives: bool = True
    # Uploaded files are shared "anyone with the link can view".
    share_uploads: bool = True


class SyncConfig(BaseModel):
    max_concurrency: int = Field(default=10, ge=1, le=100)
    # 0 disables the deadline.
    full_sync_deadline_sec: float = Field(default=0, ge=0)


class StorageConfig(BaseModel):
    upload_dir: str = "uploads"


class UploadConfig(BaseModel):
    image_thumbnail_delay_sec: float = Field(default=5.0, ge=0)
    video_thumbnail_delay_sec: float = Field(default=30.0, ge=0)


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///drivemirror.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = ""


class AppConfig(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    drive: DriveConfig = Field(default_factory=DriveConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Web API
    web_bind_host: str = "127.0.0.1"
    web_port: int = 8000


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Read the YAML config, writing the defaults first if the file is missing."""
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        cfg = AppConfig()
        save_config(cfg, path)
        return cfg

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return AppConfig.model_validate(data)


def save_config(cfg: AppConfig, path: Optional[Path] = None) -> None:
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(cfg.model_dump(), allow_unicode=True, sort_keys=False),
        encoding="utf-8",
    )
