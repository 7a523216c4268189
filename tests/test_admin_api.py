import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from apis.admin import log_icon, time_ago
from core.blob_store import LocalBlobStore
from core.config import cfg
from core.site_storage import SiteStorage
from web import create_app

ADMIN = {"username": "admin", "password": "s3cret"}
HOOK = "https://discord.com/api/webhooks/1/abc"


class TimeAgoTestCase(unittest.TestCase):
    def test_time_ago_buckets(self):
        now = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(time_ago(now - timedelta(seconds=10), now), "Just now")
        self.assertEqual(time_ago(now - timedelta(minutes=1), now), "1 minute ago")
        self.assertEqual(time_ago(now - timedelta(minutes=5), now), "5 minutes ago")
        self.assertEqual(time_ago(now - timedelta(hours=3), now), "3 hours ago")
        self.assertEqual(time_ago(now - timedelta(days=1), now), "1 day ago")
        self.assertEqual(time_ago("2024-01-01T00:00:00Z", now), "2024-01-01")
        self.assertEqual(time_ago(None, now), "")

    def test_log_icon(self):
        self.assertEqual(log_icon("info", "auth"), "user-shield")
        self.assertEqual(log_icon("error", "admin"), "user-edit")
        self.assertEqual(log_icon("warning", "system"), "exclamation-triangle")
        self.assertEqual(log_icon("other", "system"), "info-circle")


class SiteApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._cfg_patch = patch.dict(cfg.config, {"admin": dict(ADMIN), "discord": {"webhook_url": ""}})
        self._cfg_patch.start()
        self.streams = MagicMock()
        self.streams.get_current_viewers.return_value = {"viewers": 100}
        self.streams.get_website_visits.return_value = {"visits": 2000}
        self.storage = SiteStorage(
            blob_store=LocalBlobStore(self._tmp.name),
            stream_provider=self.streams,
            backup_keep=2,
        )
        self.client = TestClient(create_app(storage=self.storage, load_on_startup=False, start_workers=False))

    def tearDown(self):
        self.client.close()
        self.storage.close()
        self._cfg_patch.stop()
        self._tmp.cleanup()

    def _login(self):
        self.assertEqual(self.client.post("/api/admin/login", json=ADMIN).status_code, 200)

    def test_healthz(self):
        resp = self.client.get("/healthz")
        self.assertEqual(resp.json(), {"status": "ok"})
        self.assertIn("X-Request-Id", resp.headers)

    def test_admin_reads_should_require_login(self):
        for path in ("/api/admin/stats", "/api/admin/logs", "/api/admin/activity",
                     "/api/admin/stream-settings", "/api/admin/webhook-settings"):
            self.assertEqual(self.client.get(path).status_code, 401, path)

    def test_stats_should_report_counts(self):
        self._login()
        self.storage.announcements.create("A", "c")
        resp = self.client.get("/api/admin/stats")
        self.assertEqual(resp.json(), {"announcements": 1, "viewers": 100, "visits": 2000})

    def test_activity_and_logs_should_list_newest_first(self):
        self._login()
        self.storage.logs.append("error", "internal", "system")
        self.storage.announcements.create("Hello", "c")
        logs = self.client.get("/api/admin/logs", params={"limit": 10}).json()
        self.assertEqual(logs[0]["message"], "New announcement created: Hello")
        activity = self.client.get("/api/admin/activity").json()
        self.assertNotIn("internal", [x["description"] for x in activity])
        self.assertEqual(activity[0]["icon"], "user-edit")
        self.assertEqual(activity[0]["timestamp"], "Just now")

    def test_theme_should_be_public_to_read_and_protected_to_write(self):
        self.assertEqual(self.client.get("/api/theme").json()["currentTheme"], "default")
        self.assertEqual(self.client.post("/api/theme", json={"theme": "halloween"}).status_code, 401)

        self._login()
        resp = self.client.post("/api/theme", json={"theme": "halloween"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/api/theme").json()["currentTheme"], "halloween")
        self.assertEqual(self.storage.logs.list()[0].message, "Theme updated: halloween")

        self.assertEqual(self.client.post("/api/theme", json={"theme": "neon"}).status_code, 400)
        self.assertEqual(self.client.post("/api/theme", json={}).status_code, 400)

    def test_custom_theme_should_apply(self):
        self._login()
        resp = self.client.post("/api/admin/theme-settings/custom", json={"primaryColor": "#123456"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["currentTheme"], "custom")
        self.assertEqual(body["customTheme"], {"primaryColor": "#123456"})

    def test_featured_stream_settings(self):
        self._login()
        resp = self.client.post(
            "/api/admin/stream-settings/featured",
            json={"featured": "custom", "customUrl": "https://player.example/embed"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["customEmbedUrl"], "https://player.example/embed")
        self.assertEqual(self.client.post("/api/admin/stream-settings/featured", json={}).status_code, 400)
        self.assertEqual(
            self.client.post("/api/admin/stream-settings/featured", json={"featured": "other"}).status_code,
            400,
        )

    def test_webhook_settings_round_trip(self):
        self._login()
        self.assertEqual(self.client.post("/api/admin/webhook-settings", json={}).status_code, 400)
        resp = self.client.post(
            "/api/admin/webhook-settings",
            json={"url": HOOK, "logLevel": "warning", "realTimeLogging": False},
        )
        self.assertEqual(resp.status_code, 200)
        settings = self.client.get("/api/admin/webhook-settings").json()
        self.assertEqual(settings["url"], HOOK)
        self.assertEqual(settings["logLevel"], "warning")
        self.assertFalse(settings["realTimeLogging"])

    def test_webhook_test_should_report_delivery(self):
        self._login()
        with patch.object(self.storage.notifier.webhook, "send", return_value=True) as send:
            self.assertEqual(self.client.post("/api/admin/webhook-settings/test").status_code, 200)
            send.assert_called_once()
        with patch.object(self.storage.notifier.webhook, "send", return_value=False):
            self.assertEqual(self.client.post("/api/admin/webhook-settings/test").status_code, 502)

    def test_discord_log_should_forward_embeds(self):
        self.assertEqual(self.client.post("/api/discord/log", json={"embeds": []}).status_code, 401)
        self._login()
        self.assertEqual(self.client.post("/api/discord/log", json={"embeds": []}).status_code, 400)
        embed = {"title": "Client error", "description": "boom"}
        with patch.object(self.storage.notifier.webhook, "send", return_value=True) as send:
            resp = self.client.post("/api/discord/log", json={"embeds": [embed]})
        self.assertEqual(resp.status_code, 200)
        send.assert_called_once_with({"embeds": [embed]})
        self.assertEqual(self.storage.logs.list()[0].source, "webhook")

    def test_twitch_routes_should_use_provider(self):
        self.streams.get_live_streamer.return_value = None
        self.streams.get_all_streamers_status.return_value = {"main": {"isLive": False}, "gaming": {"isLive": False}}
        self.streams.get_streamer_status.return_value = {"name": "x", "isLive": False}
        self.assertIsNone(self.client.get("/api/twitch/live").json())
        self.assertIn("main", self.client.get("/api/twitch/streamers").json())
        self.assertEqual(self.client.get("/api/twitch/streams/x").json()["name"], "x")
        self.streams.get_streamer_status.assert_called_once_with("x")


if __name__ == "__main__":
    unittest.main()
