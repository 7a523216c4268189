import random
import unittest
from unittest.mock import MagicMock

from core.twitch_service import MockTwitchProvider


class MockTwitchProviderTestCase(unittest.TestCase):
    def test_unknown_channel_should_be_offline(self):
        provider = MockTwitchProvider(rng=random.Random(1))
        status = provider.get_streamer_status("someone_else")
        self.assertFalse(status["isLive"])
        self.assertEqual(status["url"], "https://www.twitch.tv/someone_else")

    def test_live_status_should_carry_stream_details(self):
        rng = MagicMock()
        rng.random.return_value = 0.0
        rng.randrange.return_value = 1234
        provider = MockTwitchProvider(rng=rng)
        status = provider.get_streamer_status(provider.main_channel())
        self.assertTrue(status["isLive"])
        self.assertEqual(status["name"], "RENNSZ")
        self.assertEqual(status["viewers"], 1234)
        self.assertTrue(status["startedAt"].endswith("Z"))

    def test_live_streamer_should_prefer_main_channel(self):
        rng = MagicMock()
        rng.random.return_value = 0.0
        rng.randrange.return_value = 10
        provider = MockTwitchProvider(rng=rng)
        self.assertEqual(provider.get_live_streamer()["name"], "RENNSZ")

        rng.random.return_value = 0.99
        self.assertIsNone(provider.get_live_streamer())

    def test_gaming_channel_used_when_main_offline(self):
        rng = MagicMock()
        rng.random.side_effect = [0.9, 0.1]
        rng.randrange.return_value = 10
        provider = MockTwitchProvider(rng=rng)
        self.assertEqual(provider.get_live_streamer()["name"], "RENNSZINO")

    def test_viewer_metrics_should_cover_requested_days(self):
        provider = MockTwitchProvider(rng=random.Random(7))
        metrics = provider.get_viewer_metrics(7)
        self.assertEqual(len(metrics), 7)
        self.assertEqual(metrics, sorted(metrics, key=lambda x: x["date"]))
        for item in metrics:
            self.assertTrue(500 <= item["viewers"] < 2500)
        self.assertTrue(5000 <= provider.get_website_visits()["visits"] < 15000)


if __name__ == "__main__":
    unittest.main()
