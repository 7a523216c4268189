"""
直播状态

StreamStatusProvider 是对外接口，目前只有随机模拟实现 MockTwitchProvider；
接入真实 Twitch API 时新增一个实现即可，站点存储与路由不需要改动。
"""
import random
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from core.config import cfg
from core.models.base import dt_to_str, utc_now

PROFILE_IMAGE = "https://images.unsplash.com/photo-1511367461989-f85a21fda167?w=96&q=80"

# 模拟频道资料：live_chance 为开播概率，viewers 为观众数区间
_MOCK_CHANNELS = {
    "main": {
        "name": "RENNSZ",
        "live_chance": 0.5,
        "title": "IRL Tokyo Exploration!",
        "game": "Just Chatting",
        "viewers": (500, 2500),
        "max_uptime_ms": 3 * 60 * 60 * 1000,
        "thumbnail": "https://images.unsplash.com/photo-1502519144081-acca18599776?w=600&q=80",
    },
    "gaming": {
        "name": "RENNSZINO",
        "live_chance": 0.3,
        "title": "Gaming Chill Stream",
        "game": "Cyberpunk 2077",
        "viewers": (200, 1200),
        "max_uptime_ms": 2 * 60 * 60 * 1000,
        "thumbnail": "https://images.unsplash.com/photo-1542751371-adc38448a05e?w=600&q=80",
    },
}


def channel_url(login: str) -> str:
    return f"https://www.twitch.tv/{login}"


class StreamStatusProvider(ABC):
    @abstractmethod
    def get_streamer_status(self, channel: str) -> Dict[str, Any]:
        """返回频道状态，至少包含 name / login / url / isLive"""
        ...

    def main_channel(self) -> str:
        return str(cfg.get("twitch.main_channel", "rennsz")).lower()

    def gaming_channel(self) -> str:
        return str(cfg.get("twitch.gaming_channel", "rennszino")).lower()

    def get_all_streamers_status(self) -> Dict[str, Dict[str, Any]]:
        return {
            "main": self.get_streamer_status(self.main_channel()),
            "gaming": self.get_streamer_status(self.gaming_channel()),
        }

    def get_live_streamer(self) -> Optional[Dict[str, Any]]:
        """主频道优先，其次游戏频道，都未开播返回 None"""
        statuses = self.get_all_streamers_status()
        for key in ("main", "gaming"):
            if statuses[key].get("isLive"):
                return statuses[key]
        return None

    def get_current_viewers(self) -> Dict[str, int]:
        return {"viewers": 0}

    def get_viewer_metrics(self, days: int = 7) -> List[Dict[str, Any]]:
        return []

    def get_website_visits(self) -> Dict[str, int]:
        return {"visits": 0}


class MockTwitchProvider(StreamStatusProvider):
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _profile_for(self, channel: str) -> Optional[Dict[str, Any]]:
        if channel == self.main_channel():
            return _MOCK_CHANNELS["main"]
        if channel == self.gaming_channel():
            return _MOCK_CHANNELS["gaming"]
        return None

    def get_streamer_status(self, channel: str) -> Dict[str, Any]:
        login = str(channel or "").strip().lower()
        profile = self._profile_for(login)
        if profile is None:
            return {
                "isLive": False,
                "name": channel,
                "login": channel,
                "url": channel_url(channel),
            }

        is_live = self.rng.random() < profile["live_chance"]
        status = {
            "name": profile["name"],
            "login": login,
            "url": channel_url(login),
            "isLive": is_live,
            "profileImage": PROFILE_IMAGE,
        }
        if is_live:
            low, high = profile["viewers"]
            started = utc_now() - timedelta(milliseconds=self.rng.randrange(profile["max_uptime_ms"]))
            status.update({
                "title": profile["title"],
                "game": profile["game"],
                "viewers": self.rng.randrange(low, high),
                "startedAt": dt_to_str(started),
                "thumbnail": profile["thumbnail"],
            })
        return status

    def get_current_viewers(self) -> Dict[str, int]:
        return {"viewers": self.rng.randrange(500, 2500)}

    def get_viewer_metrics(self, days: int = 7) -> List[Dict[str, Any]]:
        today = date.today()
        return [
            {
                "date": (today - timedelta(days=offset)).isoformat(),
                "viewers": self.rng.randrange(500, 2500),
            }
            for offset in range(days - 1, -1, -1)
        ]

    def get_website_visits(self) -> Dict[str, int]:
        return {"visits": self.rng.randrange(5000, 15000)}
