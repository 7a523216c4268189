import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from core.errors import ValidationError
from core.models.site_settings import (
    STREAM_SETTINGS_DEFAULTS,
    THEME_SETTINGS_DEFAULTS,
    WEBHOOK_SETTINGS_DEFAULTS,
)
from core.settings_store import (
    SettingsStore,
    validate_stream_settings,
    validate_theme_settings,
    validate_webhook_settings,
)
from core.system_log import SystemLogBuffer


class SettingsStoreTestCase(unittest.TestCase):
    def test_update_should_merge_and_stamp_updated_at(self):
        persistence = MagicMock()
        store = SettingsStore("stream", STREAM_SETTINGS_DEFAULTS, validate_stream_settings, persistence=persistence)
        result = store.update({"featuredStream": "custom", "customEmbedUrl": " https://player.example/x "})
        self.assertEqual(result["featuredStream"], "custom")
        self.assertEqual(result["customEmbedUrl"], "https://player.example/x")
        self.assertIsNotNone(result["updatedAt"])
        persistence.request_save.assert_called_once_with("settings.stream")

    def test_update_should_ignore_unknown_and_system_fields(self):
        store = SettingsStore("webhook", WEBHOOK_SETTINGS_DEFAULTS, validate_webhook_settings)
        result = store.update({"lastBackup": "forged", "bogus": 1, "logLevel": "error"})
        self.assertIsNone(result["lastBackup"])
        self.assertNotIn("bogus", result)
        self.assertEqual(result["logLevel"], "error")

    def test_invalid_values_should_raise_and_keep_state(self):
        store = SettingsStore("theme", THEME_SETTINGS_DEFAULTS, validate_theme_settings)
        with self.assertRaises(ValidationError) as ctx:
            store.update({"currentTheme": "neon"})
        self.assertEqual(ctx.exception.field, "currentTheme")
        self.assertEqual(store.get()["currentTheme"], "default")
        self.assertIsNone(store.get()["updatedAt"])

    def test_custom_theme_should_keep_known_colour_keys(self):
        store = SettingsStore("theme", THEME_SETTINGS_DEFAULTS, validate_theme_settings)
        result = store.update({
            "currentTheme": "custom",
            "customTheme": {"primaryColor": "#111111", "unknown": "x"},
        })
        self.assertEqual(result["customTheme"], {"primaryColor": "#111111"})
        with self.assertRaises(ValidationError):
            store.update({"customTheme": {"textColor": 123}})

    def test_webhook_validation(self):
        store = SettingsStore("webhook", WEBHOOK_SETTINGS_DEFAULTS, validate_webhook_settings)
        with self.assertRaises(ValidationError):
            store.update({"url": "ftp://example.com"})
        with self.assertRaises(ValidationError):
            store.update({"logLevel": "debug"})
        with self.assertRaises(ValidationError):
            store.update({"realTimeLogging": "yes"})
        result = store.update({"url": "https://example.com/hook", "realTimeLogging": False})
        self.assertFalse(result["realTimeLogging"])

    def test_get_should_return_copy(self):
        store = SettingsStore("theme", THEME_SETTINGS_DEFAULTS, validate_theme_settings)
        store.update({"customTheme": {"accentColor": "#222222"}})
        data = store.get()
        data["customTheme"]["accentColor"] = "#000000"
        self.assertEqual(store.get()["customTheme"]["accentColor"], "#222222")

    def test_restore_should_fill_missing_keys_with_defaults(self):
        store = SettingsStore("stream", STREAM_SETTINGS_DEFAULTS, validate_stream_settings)
        store.restore({"featuredStream": "main", "legacy": True})
        data = store.get()
        self.assertEqual(data["featuredStream"], "main")
        self.assertIn("scheduleImageUrl", data)
        self.assertNotIn("legacy", data)
        store.restore("garbage")
        self.assertEqual(store.get()["featuredStream"], "auto")

    def test_restore_should_drop_invalid_values(self):
        store = SettingsStore("theme", THEME_SETTINGS_DEFAULTS, validate_theme_settings)
        store.restore({
            "currentTheme": "bogus",
            "customTheme": {"primaryColor": "#abcdef"},
            "updatedAt": "2024-01-01T00:00:00Z",
        })
        data = store.get()
        self.assertEqual(data["currentTheme"], "default")
        self.assertEqual(data["customTheme"], {"primaryColor": "#abcdef"})
        self.assertEqual(data["updatedAt"], "2024-01-01T00:00:00Z")

        webhook = SettingsStore("webhook", WEBHOOK_SETTINGS_DEFAULTS, validate_webhook_settings)
        webhook.restore({"url": "https://example.com/hook", "logLevel": "debug", "realTimeLogging": "no"})
        data = webhook.get()
        self.assertEqual(data["url"], "https://example.com/hook")
        self.assertEqual(data["logLevel"], "info")
        self.assertTrue(data["realTimeLogging"])


class SystemLogBufferTestCase(unittest.TestCase):
    def test_buffer_should_drop_oldest_over_limit(self):
        buf = SystemLogBuffer(limit=3)
        for i in range(5):
            buf.append("info", f"m{i}")
        self.assertEqual(len(buf), 3)
        self.assertEqual([x.message for x in buf.list()], ["m4", "m3", "m2"])

    def test_unknown_level_should_become_info(self):
        buf = SystemLogBuffer()
        self.assertEqual(buf.append("debug", "x").level, "info")

    def test_recent_activity_should_skip_system_errors(self):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        stamps = [base + timedelta(minutes=i) for i in range(3)]
        buf = SystemLogBuffer()
        with patch("core.system_log.utc_now", side_effect=stamps):
            buf.append("info", "login", "auth")
            buf.append("error", "disk", "system")
            buf.append("error", "webhook", "admin")
        self.assertEqual([x.message for x in buf.recent_activity()], ["webhook", "login"])

    def test_restore_should_continue_ids(self):
        buf = SystemLogBuffer()
        buf.restore([
            {"id": 4, "level": "warning", "message": "a", "source": "auth", "timestamp": "2024-01-01T00:00:00Z"},
            "junk",
        ])
        self.assertEqual(len(buf), 1)
        self.assertEqual(buf.append("info", "b").id, 5)

    def test_restore_wrong_shape_should_be_empty(self):
        buf = SystemLogBuffer()
        buf.append("info", "x")
        for data in (7, "text", {"id": 1}):
            with self.subTest(data=data):
                buf.restore(data)
                self.assertEqual(len(buf), 0)
        self.assertEqual(buf.append("info", "y").id, 1)


if __name__ == "__main__":
    unittest.main()
