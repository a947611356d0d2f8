import tempfile
import unittest
from pathlib import Path

import yaml
from pydantic import ValidationError

from drivemirror.config import AppConfig, load_config, save_config


class TestConfig(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = Path(tmp.name) / "conf" / "drivemirror.yaml"

    def test_missing_file_writes_defaults(self) -> None:
        cfg = load_config(self.path)

        self.assertTrue(self.path.exists())
        self.assertEqual(cfg.sync.max_concurrency, 10)
        self.assertEqual(cfg.upload.image_thumbnail_delay_sec, 5.0)
        self.assertEqual(cfg.upload.video_thumbnail_delay_sec, 30.0)
        self.assertEqual(cfg.auth.kind, "oauth")
        self.assertEqual(yaml.safe_load(self.path.read_text())["web_port"], 8000)

    def test_partial_file_keeps_other_defaults(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text(
            "sync:\n  max_concurrency: 4\ndatabase:\n  url: sqlite:///x.db\n",
            encoding="utf-8",
        )

        cfg = load_config(self.path)

        self.assertEqual(cfg.sync.max_concurrency, 4)
        self.assertEqual(cfg.database.url, "sqlite:///x.db")
        self.assertEqual(cfg.storage.upload_dir, "uploads")

    def test_empty_file_is_defaults(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("", encoding="utf-8")

        self.assertEqual(load_config(self.path), AppConfig())

    def test_invalid_values_are_rejected(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("sync:\n  max_concurrency: 0\n", encoding="utf-8")

        with self.assertRaises(ValidationError):
            load_config(self.path)

    def test_save_then_load(self) -> None:
        cfg = AppConfig()
        cfg.drive.root_folder_id = "abc"
        cfg.auth.kind = "service_account"

        save_config(cfg, self.path)

        self.assertEqual(load_config(self.path), cfg)


if __name__ == "__main__":
    unittest.main()
