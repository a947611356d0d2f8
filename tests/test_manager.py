import os
import unittest
from pathlib import Path
from unittest.mock import Mock

from fakes import DatabaseTestCase, FakeDrive, file, folder

from drivemirror.errors import (
    ConflictError,
    InvalidArgumentError,
    NetworkError,
    NotAuthorizedError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from drivemirror.manager import DriveMirror, Principal
from drivemirror.storage import LocalByteStorage
from drivemirror.sync import VIEW_PATHS
from drivemirror.upload import UploadRequest


class FakeTimer:
    def __init__(self, interval, function) -> None:
        self.daemon = False
        self.cancelled = False

    def start(self) -> None:
        pass

    def cancel(self) -> None:
        self.cancelled = True


class TestDriveMirror(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.drive = FakeDrive()
        self.principal = Principal(id="user-1")
        self.invalidated = Mock()
        self.storage = LocalByteStorage(Path(self.tmp_dir) / "uploads")
        self.mirror = DriveMirror.from_controller(
            self.drive,
            self.db,
            self.storage,
            principal_provider=lambda: self.principal,
            on_invalidate=self.invalidated,
            max_concurrency=2,
            timer_factory=FakeTimer,
        )
        self.root = self.mirror.create_root_folder()
        self.invalidated.reset_mock()

    def _upload(self, name="a.pdf", data=b"%PDF", folder_id=None, tags=()):
        result = self.mirror.upload_file(
            UploadRequest(data=data, filename=name, folder_id=folder_id, tag_names=list(tags))
        )
        return self.mirror.get_file(result.data["id"])

    # ----------------------------
    # Principal gating
    # ----------------------------
    def test_actions_require_a_principal(self) -> None:
        self.principal = None

        calls = [
            lambda: self.mirror.sync_drive(),
            lambda: self.mirror.quick_sync("root"),
            lambda: self.mirror.create_folder("X"),
            lambda: self.mirror.list_folders(),
            lambda: self.mirror.search_files("x"),
            lambda: self.mirror.upload_file(UploadRequest(data=b"x", filename="a.pdf")),
            lambda: self.mirror.upsert_tag("t"),
        ]
        for call in calls:
            with self.assertRaises(NotAuthorizedError):
                call()

        self.assertEqual(self.drive.called("create_folder"), [])
        self.assertEqual(self.drive.called("upload_bytes"), [])
        self.invalidated.assert_not_called()

    # ----------------------------
    # Root and sync
    # ----------------------------
    def test_create_root_folder_is_idempotent(self) -> None:
        again = self.mirror.create_root_folder()

        self.assertEqual(again.id, self.root.id)
        self.assertTrue(self.root.is_root)
        self.assertEqual(self.root.owner_id, "user-1")
        self.assertEqual(len(self.mirror.list_folders()), 1)

    def test_sync_drive_uses_principal_as_owner(self) -> None:
        self.drive.add(folder("F1", "Docs", "root"), file("D1", "r.pdf", "application/pdf", "F1"))

        report = self.mirror.sync_drive()

        self.assertEqual(report.summary["created"], 2)
        self.assertEqual(self.mirror.folders.find_by_google_id("F1").owner_id, "user-1")
        self.invalidated.assert_called_with(list(VIEW_PATHS))

    # ----------------------------
    # Folders
    # ----------------------------
    def test_create_folder_under_root(self) -> None:
        created = self.mirror.create_folder("  Photos ", description="pics")

        self.assertEqual(created.title, "Photos")
        self.assertEqual(created.parent_id, self.root.id)
        self.assertEqual(self.drive.called("create_folder"), [("create_folder", "Photos", "root")])
        self.assertIn(created.google_id, self.drive.items)
        self.invalidated.assert_called_once_with(list(VIEW_PATHS))

    def test_create_folder_requires_title(self) -> None:
        with self.assertRaises(ValidationError):
            self.mirror.create_folder("   ")
        self.assertEqual(self.drive.called("create_folder"), [])

    def test_create_folder_removes_remote_when_row_fails(self) -> None:
        self.mirror.folders.create = Mock(side_effect=PersistenceError("db down"))

        with self.assertRaises(PersistenceError):
            self.mirror.create_folder("Photos")

        created_id = self.drive.called("create_folder")
        self.assertEqual(len(created_id), 1)
        self.assertEqual(len(self.drive.called("delete")), 1)
        self.assertEqual([i for i in self.drive.items if i.startswith("NF")], [])
        self.invalidated.assert_not_called()

    def test_edit_folder_renames_remote(self) -> None:
        created = self.mirror.create_folder("Photos")

        edited = self.mirror.edit_folder(created.id, "Pictures", description="d")

        self.assertEqual(edited.title, "Pictures")
        self.assertEqual(self.drive.items[created.google_id].name, "Pictures")

    def test_edit_folder_keeps_row_when_remote_rename_fails(self) -> None:
        created = self.mirror.create_folder("Photos")
        self.drive.fail("rename", NetworkError("offline"))

        with self.assertRaises(NetworkError):
            self.mirror.edit_folder(created.id, "Pictures")

        self.assertEqual(self.mirror.folders.find_by_id(created.id).title, "Photos")

    def test_move_folder(self) -> None:
        a = self.mirror.create_folder("A")
        b = self.mirror.create_folder("B")

        moved = self.mirror.move_folder(b.id, a.id)

        self.assertEqual(moved.parent_id, a.id)
        self.assertEqual(self.drive.items[b.google_id].parents, [a.google_id])

    def test_move_folder_into_descendant_is_rejected(self) -> None:
        a = self.mirror.create_folder("A")
        b = self.mirror.create_folder("B", parent_id=a.id)

        with self.assertRaises(ConflictError):
            self.mirror.move_folder(a.id, b.id)
        with self.assertRaises(InvalidArgumentError):
            self.mirror.move_folder(self.root.id, a.id)
        with self.assertRaises(NotFoundError):
            self.mirror.move_folder(a.id, 999)
        self.assertEqual(self.drive.called("move"), [])

    def test_delete_folder_removes_remote_local_and_rows(self) -> None:
        a = self.mirror.create_folder("A")
        b = self.mirror.create_folder("B", parent_id=a.id)
        stored = self._upload(folder_id=b.id)
        self.assertTrue(os.path.exists(stored.local_path))

        self.mirror.delete_folder(a.id)

        self.assertNotIn(a.google_id, self.drive.items)
        self.assertFalse(os.path.exists(stored.local_path))
        self.assertIsNone(self.mirror.folders.find_by_id(b.id))
        self.assertIsNone(self.mirror.files.find_by_id(stored.id))

    def test_delete_folder_tolerates_missing_remote(self) -> None:
        a = self.mirror.create_folder("A")
        del self.drive.items[a.google_id]

        self.mirror.delete_folder(a.id)

        self.assertIsNone(self.mirror.folders.find_by_id(a.id))

    def test_root_cannot_be_deleted(self) -> None:
        with self.assertRaises(InvalidArgumentError):
            self.mirror.delete_folder(self.root.id)
        self.assertEqual(self.drive.called("delete"), [])

    def test_favorites_and_search(self) -> None:
        a = self.mirror.create_folder("Holiday")
        self.mirror.create_folder("Work")

        self.mirror.toggle_favorite(a.id)

        self.assertEqual([f.id for f in self.mirror.list_folders(favorites_only=True)], [a.id])
        self.assertEqual([f.id for f in self.mirror.search_folders("holi")], [a.id])

    def test_get_folder_with_contents(self) -> None:
        a = self.mirror.create_folder("A")
        self._upload(folder_id=a.id)

        loaded = self.mirror.get_folder(a.id)

        self.assertEqual(len(loaded.files), 1)
        with self.assertRaises(NotFoundError):
            self.mirror.get_folder(999)

    # ----------------------------
    # Files
    # ----------------------------
    def test_upload_file_invalidates_views(self) -> None:
        stored = self._upload(tags=["x"])

        self.assertEqual(stored.tag_names, ["x"])
        self.assertEqual(stored.folder_id, self.root.id)
        self.invalidated.assert_called_with(list(VIEW_PATHS))

    def test_upload_files_returns_settled_results(self) -> None:
        results = self.mirror.upload_files(
            [
                UploadRequest(data=b"x", filename="a.pdf"),
                UploadRequest(data=b"x", filename="a.zip", mime_type="application/zip"),
            ]
        )

        self.assertEqual([r.success for r in results], [True, False])
        self.assertEqual(results[1].error, "Unrecognized File Type")

    def test_update_file_replaces_tags(self) -> None:
        stored = self._upload(tags=["a"])

        updated = self.mirror.update_file(stored.id, title="Renamed", tag_names=["b"])

        self.assertEqual(updated.title, "Renamed")
        self.assertEqual(self.mirror.get_file(stored.id).tag_names, ["b"])

    def test_delete_file(self) -> None:
        stored = self._upload()

        self.mirror.delete_file(stored.id)

        self.assertNotIn(stored.google_id, self.drive.items)
        self.assertFalse(os.path.exists(stored.local_path))
        with self.assertRaises(NotFoundError):
            self.mirror.get_file(stored.id)

    def test_delete_file_keeps_row_when_remote_fails(self) -> None:
        stored = self._upload()
        self.drive.fail("delete", NetworkError("offline"))

        with self.assertRaises(NetworkError):
            self.mirror.delete_file(stored.id)

        self.assertIsNotNone(self.mirror.files.find_by_id(stored.id))
        self.assertTrue(os.path.exists(stored.local_path))

    def test_delete_files_reports_each(self) -> None:
        stored = self._upload()

        results = self.mirror.delete_files([stored.id, 999])

        self.assertTrue(results[0].success)
        self.assertFalse(results[1].success)
        self.assertEqual(results[1].error_type, "NotFoundError")

    def test_move_files(self) -> None:
        a = self.mirror.create_folder("A")
        f1 = self._upload("1.pdf")
        f2 = self._upload("2.pdf", folder_id=a.id)

        moved = self.mirror.move_files([f1.id, f2.id], a.id)

        self.assertEqual(moved, 1)
        self.assertEqual(self.mirror.get_file(f1.id).folder_id, a.id)
        self.assertEqual(self.drive.called("move"), [("move", f1.google_id, a.google_id)])

    def test_tags_flow(self) -> None:
        f1 = self._upload("1.pdf", tags=["old"])
        f2 = self._upload("2.pdf")

        self.mirror.assign_tags([f1.id, f2.id], ["shared"])
        self.mirror.rename_tag("old", "shared")

        self.assertEqual(
            sorted(f.id for f in self.mirror.get_files_by_tag("shared")), sorted([f1.id, f2.id])
        )
        summaries = self.mirror.list_tags()
        self.assertEqual([(t.name, t.file_count) for t in summaries], [("shared", 2)])

        self.mirror.delete_tag("shared")
        self.assertEqual(self.mirror.get_file(f1.id).tag_names, [])

    def test_upsert_tag_only_invalidates_on_create(self) -> None:
        self.mirror.upsert_tag("t")
        self.mirror.upsert_tag("t")

        self.assertEqual(self.invalidated.call_count, 1)

    def test_repair_duplicate_roots(self) -> None:
        self.mirror.folders.create("root-copy", title="Root", is_root=True, owner_id="user-1")

        self.assertEqual(self.mirror.repair_duplicate_roots(), 1)
        self.assertEqual(self.mirror.repair_duplicate_roots(), 0)


if __name__ == "__main__":
    unittest.main()
