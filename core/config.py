"""
core/config.py — YAML 配置

用法：
    from core.config import cfg
    cfg.get("storage.backend", "file")
    cfg.set("twitch.main_channel", "rennsz")
    cfg.save_config()
"""

import os
import threading
from typing import Any, Dict, Optional

import yaml

VERSION = "1.2.0"
API_BASE = "/api"

# 环境变量优先于配置文件的敏感项
_ENV_OVERRIDES = {
    "SECRET_KEY": "secret_key",
    "ADMIN_USERNAME": "admin.username",
    "ADMIN_PASSWORD": "admin.password",
    "DISCORD_WEBHOOK_URL": "discord.webhook_url",
    "STORAGE_BACKEND": "storage.backend",
    "LOG_LEVEL": "log.level",
}


class Config:
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.getenv("CONFIG_PATH", "config.yaml")
        self.config: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self.reload()

    def reload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.config_path and os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            data = {}
        self.config = data
        for env_key, path in _ENV_OVERRIDES.items():
            value = os.getenv(env_key)
            if value:
                self.set(path, value)
        return self.config

    def load(self, config_path: str) -> Dict[str, Any]:
        self.config_path = config_path
        return self.reload()

    def get(self, key: str, default: Any = None) -> Any:
        cursor: Any = self.config
        for part in [x for x in str(key or "").split(".") if x]:
            if not isinstance(cursor, dict) or part not in cursor:
                return default
            cursor = cursor[part]
        return default if cursor is None else cursor

    def set(self, key: str, value: Any) -> None:
        keys = [x for x in str(key or "").split(".") if x]
        if not keys:
            return
        with self._lock:
            cursor = self.config
            for part in keys[:-1]:
                current = cursor.get(part)
                if not isinstance(current, dict):
                    cursor[part] = {}
                cursor = cursor[part]
            cursor[keys[-1]] = value

    def save_config(self) -> None:
        with self._lock:
            with open(self.config_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(self.config, f, allow_unicode=True, sort_keys=False)


cfg = Config()


def set_config(key: str, value: Any) -> None:
    cfg.set(key, value)
    cfg.save_config()
