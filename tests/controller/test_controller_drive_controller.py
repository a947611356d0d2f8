import json
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from drivemirror.controller.drive_controller import (
    GoogleDriveController,
    _file_dict_to_drive_item,
)
from drivemirror.errors import NotFoundError, RateLimitError
from drivemirror.util.mime import FOLDER_MIME, SHORTCUT_MIME


def _http_error(status, reason, body=None):
    from googleapiclient.errors import HttpError

    resp = Mock()
    resp.status = status
    resp.reason = reason
    content = json.dumps(body).encode("utf-8") if body is not None else b"{}"
    return HttpError(resp=resp, content=content)


class TestDriveControllerHelpers(unittest.TestCase):
    def test_file_dict_to_drive_item_parses_fields(self) -> None:
        dt = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        data = {
            "id": "F1",
            "name": "report.pdf",
            "mimeType": "application/pdf",
            "parents": ["P1"],
            "trashed": False,
            "modifiedTime": "2025-01-01T00:00:00.000Z",
            "createdTime": "2025-01-01T00:00:00Z",
            "size": "123",
            "description": "quarterly",
            "originalFilename": "report.pdf",
            "fileExtension": "pdf",
            "iconLink": "https://icons/16/pdf",
            "webViewLink": "https://view",
        }
        item = _file_dict_to_drive_item(data)
        self.assertEqual(item.item_id, "F1")
        self.assertEqual(item.parent_id, "P1")
        self.assertEqual(item.size, 123)
        self.assertEqual(item.modified_time, dt)
        self.assertEqual(item.file_extension, "pdf")
        self.assertEqual(item.description, "quarterly")
        self.assertIsNone(item.thumbnail_link)

    def test_file_dict_to_drive_item_shortcut_details(self) -> None:
        item = _file_dict_to_drive_item(
            {
                "id": "S1",
                "name": "link",
                "mimeType": SHORTCUT_MIME,
                "parents": ["P1"],
                "shortcutDetails": {"targetId": "T1", "targetMimeType": FOLDER_MIME},
            }
        )
        self.assertTrue(item.is_shortcut)
        self.assertEqual(item.shortcut_target_id, "T1")
        self.assertEqual(item.shortcut_target_mime_type, FOLDER_MIME)


class TestDriveControllerMocked(unittest.TestCase):
    def _mock_service_with_pages(self, *pages):
        service = Mock()
        files_resource = Mock()
        request = Mock()

        service.files.return_value = files_resource
        request.execute.side_effect = list(pages)
        files_resource.list.return_value = request
        return service, files_resource, request

    def test_list_children_page_includes_supports_all_drives_kwargs(self) -> None:
        service, files_resource, _ = self._mock_service_with_pages({"files": []})
        controller = GoogleDriveController.from_service(service, supports_all_drives=True)

        controller.list_children_page("P1")

        kwargs = files_resource.list.call_args.kwargs
        self.assertTrue(kwargs.get("supportsAllDrives"))
        self.assertTrue(kwargs.get("includeItemsFromAllDrives"))
        self.assertIn("'P1' in parents", kwargs["q"])
        self.assertIn("trashed=false", kwargs["q"])

    def test_list_modified_since_follows_page_tokens(self) -> None:
        service, files_resource, request = self._mock_service_with_pages(
            {"files": [{"id": "A", "name": "a", "mimeType": "image/png"}], "nextPageToken": "t2"},
            {"files": [{"id": "B", "name": "b", "mimeType": "image/png"}]},
        )
        controller = GoogleDriveController.from_service(service)

        items = controller.list_modified_since(datetime(2025, 1, 1, tzinfo=timezone.utc))

        self.assertEqual([i.item_id for i in items], ["A", "B"])
        self.assertEqual(request.execute.call_count, 2)
        tokens = [c.kwargs["pageToken"] for c in files_resource.list.call_args_list]
        self.assertEqual(tokens, [None, "t2"])

    def test_list_modified_since_builds_query(self) -> None:
        service, files_resource, _ = self._mock_service_with_pages({"files": []})
        controller = GoogleDriveController.from_service(service)

        controller.list_modified_since(datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc))

        q = files_resource.list.call_args.kwargs["q"]
        self.assertEqual(q, "modifiedTime > '2025-03-04T05:06:07' and trashed=false")

    def test_get_root_folder_prefers_configured_id(self) -> None:
        service = Mock()
        files_resource = Mock()
        req = Mock()
        service.files.return_value = files_resource
        files_resource.get.return_value = req
        req.execute.return_value = {"id": "R", "name": "Root", "mimeType": FOLDER_MIME}

        controller = GoogleDriveController.from_service(service, root_folder_id="R")
        root = controller.get_root_folder()

        self.assertEqual(root.item_id, "R")
        self.assertEqual(files_resource.get.call_args.kwargs["fileId"], "R")

    def test_get_root_folder_picks_parentless_folder(self) -> None:
        service, _, _ = self._mock_service_with_pages(
            {
                "files": [
                    {"id": "C", "name": "child", "mimeType": FOLDER_MIME, "parents": ["R"]},
                    {"id": "R", "name": "root", "mimeType": FOLDER_MIME},
                ]
            }
        )
        controller = GoogleDriveController.from_service(service)

        self.assertEqual(controller.get_root_folder().item_id, "R")

    def test_get_root_folder_missing(self) -> None:
        service, _, _ = self._mock_service_with_pages({"files": []})
        controller = GoogleDriveController.from_service(service)

        with self.assertRaises(NotFoundError):
            controller.get_root_folder()

    def test_upload_bytes_shares_when_enabled(self) -> None:
        service = Mock()
        files_resource = Mock()
        perms_resource = Mock()
        service.files.return_value = files_resource
        service.permissions.return_value = perms_resource
        files_resource.create.return_value.execute.return_value = {
            "id": "U1",
            "name": "photo.png",
            "mimeType": "image/png",
            "parents": ["P1"],
        }

        controller = GoogleDriveController.from_service(service, share_uploads=True)
        item = controller.upload_bytes(b"png", "photo.png", "image/png", "P1", description="d")

        self.assertEqual(item.item_id, "U1")
        body = files_resource.create.call_args.kwargs["body"]
        self.assertEqual(body["parents"], ["P1"])
        self.assertEqual(body["description"], "d")
        perm_kwargs = perms_resource.create.call_args.kwargs
        self.assertEqual(perm_kwargs["fileId"], "U1")
        self.assertEqual(perm_kwargs["body"], {"role": "reader", "type": "anyone"})

    def test_upload_bytes_without_sharing(self) -> None:
        service = Mock()
        files_resource = Mock()
        service.files.return_value = files_resource
        files_resource.create.return_value.execute.return_value = {
            "id": "U1",
            "name": "a.pdf",
            "mimeType": "application/pdf",
        }

        controller = GoogleDriveController.from_service(service, share_uploads=False)
        controller.upload_bytes(b"%PDF", "a.pdf", "application/pdf", "P1")

        service.permissions.assert_not_called()

    def test_get_maps_http_404_to_not_found(self) -> None:
        service = Mock()
        files_resource = Mock()
        req = Mock()

        service.files.return_value = files_resource
        files_resource.get.return_value = req
        req.execute.side_effect = _http_error(404, "Not Found")

        controller = GoogleDriveController.from_service(service)

        with self.assertRaises(NotFoundError):
            controller.get("X")

    def test_retry_on_429(self) -> None:
        service = Mock()
        files_resource = Mock()
        req = Mock()

        service.files.return_value = files_resource
        files_resource.get.return_value = req

        err_body = {
            "error": {
                "message": "rate limited",
                "errors": [{"reason": "rateLimitExceeded"}],
            }
        }
        http_err = _http_error(429, "rateLimitExceeded", err_body)

        # Fail twice, then succeed.
        req.execute.side_effect = [
            http_err,
            http_err,
            {"id": "F1", "name": "n", "mimeType": "text/plain", "parents": []},
        ]

        controller = GoogleDriveController.from_service(service)

        with patch("time.sleep", return_value=None) as sleep:
            item = controller.get("F1")

        self.assertEqual(item.item_id, "F1")
        self.assertEqual(req.execute.call_count, 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1.0, 2.0])

    def test_map_429_to_rate_limit_error_after_retries(self) -> None:
        service = Mock()
        files_resource = Mock()
        req = Mock()

        service.files.return_value = files_resource
        files_resource.get.return_value = req
        req.execute.side_effect = _http_error(
            429,
            "rateLimitExceeded",
            {"error": {"message": "rate limited", "errors": [{"reason": "rateLimitExceeded"}]}},
        )

        controller = GoogleDriveController.from_service(service)

        with patch("time.sleep", return_value=None):
            with self.assertRaises(RateLimitError):
                controller.get("X")
        self.assertEqual(req.execute.call_count, 4)

    def test_not_found_is_not_retried(self) -> None:
        service = Mock()
        files_resource = Mock()
        req = Mock()
        service.files.return_value = files_resource
        files_resource.delete.return_value = req
        req.execute.side_effect = _http_error(404, "Not Found")

        controller = GoogleDriveController.from_service(service)

        with patch("time.sleep", return_value=None) as sleep:
            with self.assertRaises(NotFoundError):
                controller.delete("X")
        sleep.assert_not_called()
        self.assertEqual(req.execute.call_count, 1)


if __name__ == "__main__":
    unittest.main()
