"""设置：持久化的 enabled 开关（JSON 文件），支持订阅变化"""

import json
import logging
from pathlib import Path
from typing import Callable, List

log = logging.getLogger(__name__)

SETTINGS_KEY = "autoListenEnabled"


class SettingsUnavailable(Exception):
    """设置文件无法写入"""


class SettingsStore:
    """
    读取失败时保留上一次已知的值（首次默认为 True）；
    值发生变化时同步通知所有订阅者。
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.enabled = True
        self._subscribers: List[Callable[[bool], None]] = []
        self.refresh()

    def subscribe(self, callback: Callable[[bool], None]):
        self._subscribers.append(callback)

    def refresh(self) -> bool:
        """重新读取文件，返回当前值"""
        try:
            value = self._read()
        except (OSError, ValueError) as e:
            log.warning("读取设置失败，沿用 enabled=%s: %s", self.enabled, e)
            return self.enabled
        self._update(value)
        return self.enabled

    def set(self, enabled: bool):
        """写入新值并通知订阅者"""
        try:
            data = self._read_raw()
        except (OSError, ValueError):
            data = {}
        data[SETTINGS_KEY] = bool(enabled)
        try:
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            raise SettingsUnavailable(f"无法写入 {self.path}: {e}") from e
        self._update(bool(enabled))

    def _read_raw(self) -> dict:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} 不是 JSON 对象")
        return data

    def _read(self) -> bool:
        # 未设置时默认启用
        return self._read_raw().get(SETTINGS_KEY) is not False

    def _update(self, value: bool):
        if value == self.enabled:
            return
        self.enabled = value
        log.info("设置变化: enabled=%s", value)
        for callback in list(self._subscribers):
            callback(value)
