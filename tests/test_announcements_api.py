import tempfile
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from core.blob_store import LocalBlobStore
from core.config import cfg
from core.site_storage import SiteStorage
from web import create_app

ADMIN = {"username": "admin", "password": "s3cret"}


class AnnouncementsApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._cfg_patch = patch.dict(cfg.config, {"admin": dict(ADMIN), "discord": {"webhook_url": ""}})
        self._cfg_patch.start()
        self.storage = SiteStorage(blob_store=LocalBlobStore(self._tmp.name), backup_keep=2)
        self.app = create_app(storage=self.storage, load_on_startup=False, start_workers=False)
        self.client = TestClient(self.app)

    def tearDown(self):
        self.client.close()
        self.storage.close()
        self._cfg_patch.stop()
        self._tmp.cleanup()

    def _login(self):
        resp = self.client.post("/api/admin/login", json=ADMIN)
        self.assertEqual(resp.status_code, 200)

    def _create(self, **body):
        payload = {"title": "Title", "content": "Body"}
        payload.update(body)
        return self.client.post("/api/announcements", json=payload)

    def test_list_should_be_public(self):
        resp = self.client.get("/api/announcements")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), [])

    def test_mutations_should_require_login(self):
        self.assertEqual(self._create().status_code, 401)
        self.assertEqual(self.client.patch("/api/announcements/1", json={"title": "x"}).status_code, 401)
        self.assertEqual(self.client.delete("/api/announcements/1").status_code, 401)
        self.assertEqual(self.storage.announcements.count(), 0)

    def test_wrong_password_should_be_rejected(self):
        resp = self.client.post("/api/admin/login", json={"username": "admin", "password": "nope"})
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(self.client.get("/api/admin/check-auth").json()["authenticated"])
        self.assertEqual(self.storage.logs.list()[0].level, "warning")

    def test_empty_configured_password_should_refuse_login(self):
        with patch.dict(cfg.config, {"admin": {"username": "admin", "password": ""}}):
            resp = self.client.post("/api/admin/login", json={"username": "admin", "password": ""})
        self.assertEqual(resp.status_code, 401)

    def test_create_should_return_201_with_record(self):
        self._login()
        resp = self._create(category="event", isPinned=True)
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["id"], 1)
        self.assertEqual(body["category"], "event")
        self.assertTrue(body["isPinned"])
        self.assertTrue(body["createdAt"].endswith("Z"))

    def test_create_defaults_category_to_general(self):
        self._login()
        body = self._create().json()
        self.assertEqual(body["category"], "general")
        self.assertFalse(body["isPinned"])

    def test_create_validation_errors_should_return_400(self):
        self._login()
        resp = self._create(title="")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["field"], "title")

        resp = self._create(category="gossip")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["field"], "category")

        resp = self.client.post("/api/announcements", json={"title": "no content"})
        self.assertEqual(resp.status_code, 400)

        # 校验失败不消耗 id
        self.assertEqual(self._create().json()["id"], 1)

    def test_pinned_announcement_should_be_listed_first(self):
        self._login()
        a = self._create(title="A").json()
        b = self._create(title="B", isPinned=True).json()
        c = self._create(title="C", isPinned=True).json()
        items = self.client.get("/api/announcements").json()
        self.assertEqual([x["id"] for x in items][0], c["id"])
        self.assertEqual({x["id"] for x in items}, {a["id"], b["id"], c["id"]})
        self.assertEqual(sum(1 for x in items if x["isPinned"]), 1)

    def test_update_should_merge_given_fields(self):
        self._login()
        created = self._create(title="A", category="stream").json()
        resp = self.client.patch(f"/api/announcements/{created['id']}", json={"title": "A2", "isPinned": True})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["title"], "A2")
        self.assertEqual(body["category"], "stream")
        self.assertEqual(body["content"], "Body")
        self.assertEqual(body["createdAt"], created["createdAt"])
        self.assertTrue(body["isPinned"])

    def test_update_with_null_category_should_return_400(self):
        self._login()
        created = self._create().json()
        resp = self.client.patch(f"/api/announcements/{created['id']}", json={"category": None})
        self.assertEqual(resp.status_code, 400)

    def test_unknown_id_should_return_404(self):
        self._login()
        self.assertEqual(self.client.get("/api/announcements/999").status_code, 404)
        resp = self.client.patch("/api/announcements/999", json={"title": "x"})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"], "Announcement not found")
        self.assertEqual(self.client.delete("/api/announcements/999").status_code, 404)

    def test_delete_should_remove_record(self):
        self._login()
        created = self._create(isPinned=True).json()
        resp = self.client.delete(f"/api/announcements/{created['id']}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True})
        self.assertEqual(self.client.get("/api/announcements").json(), [])

    def test_logout_should_end_session(self):
        self._login()
        self.assertTrue(self.client.get("/api/admin/check-auth").json()["authenticated"])
        self.client.post("/api/admin/logout")
        self.assertFalse(self.client.get("/api/admin/check-auth").json()["authenticated"])
        self.assertEqual(self._create().status_code, 401)

    def test_mutation_should_be_persisted_in_background(self):
        self._login()
        self._create(title="Saved")
        self.assertTrue(self.storage.saver.wait_idle(5))
        text = LocalBlobStore(self._tmp.name).read_text("announcements.json")
        self.assertIn("Saved", text)


if __name__ == "__main__":
    unittest.main()
