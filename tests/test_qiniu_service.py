import unittest
from unittest.mock import MagicMock, patch

import requests

from core.errors import PersistenceError
from core.qiniu_service import QiniuBlobStore


def _info(status_code):
    info = MagicMock()
    info.status_code = status_code
    return info


class QiniuBlobStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.store = QiniuBlobStore(
            ak="ak", sk="sk", bucket="site", domain="https://cdn.example.com/", prefix="site-data/"
        )
        self.store.bucket_manager = MagicMock()

    def test_missing_config_should_raise(self):
        with patch("core.qiniu_service.get_qiniu_config", return_value=("", "", "", "", "p/")):
            with self.assertRaises(PersistenceError):
                QiniuBlobStore()

    @patch("core.qiniu_service.qiniu.put_data")
    def test_write_should_upload_under_prefix(self, mock_put):
        mock_put.return_value = ({"hash": "h"}, _info(200))
        self.store.write_text("announcements.json", '{"nextId": 1}')
        token, key, data = mock_put.call_args[0]
        self.assertEqual(key, "site-data/announcements.json")
        self.assertEqual(data, b'{"nextId": 1}')
        self.assertTrue(token)

    @patch("core.qiniu_service.qiniu.put_data")
    def test_write_failure_should_raise(self, mock_put):
        mock_put.return_value = (None, _info(401))
        with self.assertRaises(PersistenceError):
            self.store.write_text("logs.json", "[]")

    @patch("core.qiniu_service.requests.get")
    def test_read_should_handle_missing_and_errors(self, mock_get):
        ok = MagicMock(status_code=200, text='{"a": 1}')
        mock_get.return_value = ok
        self.assertEqual(self.store.read_text("themeSettings.json"), '{"a": 1}')
        self.assertIn("cdn.example.com/site-data/themeSettings.json", mock_get.call_args[0][0])

        mock_get.return_value = MagicMock(status_code=404)
        self.assertIsNone(self.store.read_text("themeSettings.json"))

        mock_get.return_value = MagicMock(status_code=500)
        with self.assertRaises(PersistenceError):
            self.store.read_text("themeSettings.json")

        mock_get.side_effect = requests.Timeout("slow")
        with self.assertRaises(PersistenceError):
            self.store.read_text("themeSettings.json")

    def test_list_should_follow_marker_and_strip_prefix(self):
        self.store.bucket_manager.list.side_effect = [
            ({"items": [{"key": "site-data/backup_logs.json_2"}], "marker": "m1"}, False, _info(200)),
            ({"items": [{"key": "site-data/backup_logs.json_1"}]}, True, _info(200)),
        ]
        self.assertEqual(
            self.store.list_names("backup_logs.json_"),
            ["backup_logs.json_1", "backup_logs.json_2"],
        )
        second_call = self.store.bucket_manager.list.call_args_list[1]
        self.assertEqual(second_call[1]["marker"], "m1")

    def test_delete_should_accept_missing_object(self):
        self.store.bucket_manager.delete.return_value = (None, _info(612))
        self.store.delete("backup_logs.json_1")
        self.store.bucket_manager.delete.return_value = (None, _info(599))
        with self.assertRaises(PersistenceError):
            self.store.delete("backup_logs.json_1")


if __name__ == "__main__":
    unittest.main()
