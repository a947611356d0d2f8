import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fakes import T0
from typer.testing import CliRunner

from drivemirror.cli.main import app
from drivemirror.errors import AuthError
from drivemirror.models import SyncReport


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.config = str(Path(tmp.name) / "drivemirror.yaml")
        self.runner = CliRunner()

        patcher = patch("drivemirror.cli.main.setup_logging")
        patcher.start()
        self.addCleanup(patcher.stop)

        patcher = patch("drivemirror.cli.main.DriveMirror")
        self.mirror_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.mirror = self.mirror_cls.return_value

    def test_config_show(self) -> None:
        result = self.runner.invoke(app, ["config-show", "--config", self.config])

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(json.loads(result.output)["sync"]["max_concurrency"], 10)

    def test_sync_prints_summary(self) -> None:
        report = SyncReport(kind="full", started_at=T0)
        report.count("created", 3)
        self.mirror.sync_drive.return_value = report

        result = self.runner.invoke(app, ["sync", "--config", self.config, "--operator", "ops"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("created", result.output)
        principal = self.mirror_cls.call_args.kwargs["principal_provider"]()
        self.assertEqual(principal.id, "ops")
        self.mirror.close.assert_called_once()

    def test_sync_with_failed_items_exits_2(self) -> None:
        report = SyncReport(kind="full", started_at=T0)
        report.record_failure("D1", RuntimeError("boom"))
        self.mirror.sync_drive.return_value = report

        result = self.runner.invoke(app, ["sync", "--config", self.config])

        self.assertEqual(result.exit_code, 2)
        self.assertIn("D1", result.output)

    def test_sync_error_exits_1(self) -> None:
        self.mirror.sync_drive.side_effect = AuthError("token revoked")

        result = self.runner.invoke(app, ["sync", "--config", self.config])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Not authorized", result.output)
        self.mirror.close.assert_called_once()

    def test_quick_sync(self) -> None:
        self.mirror.quick_sync.return_value = SyncReport(kind="quick", started_at=T0)

        result = self.runner.invoke(app, ["quick-sync", "F1", "--config", self.config])

        self.assertEqual(result.exit_code, 0, result.output)
        self.mirror.quick_sync.assert_called_once_with("F1")

    def test_default_operator(self) -> None:
        self.mirror.repair_duplicate_roots.return_value = 2

        with patch.dict("os.environ"):
            os.environ.pop("DRIVEMIRROR_OPERATOR", None)
            result = self.runner.invoke(app, ["repair-roots", "--config", self.config])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.output), {"ok": True, "removed": 2})
        principal = self.mirror_cls.call_args.kwargs["principal_provider"]()
        self.assertEqual(principal.id, "cli")


if __name__ == "__main__":
    unittest.main()
