"""记忆模块：诊断日志环形缓冲区、点击计数与状态导出"""

import json
import logging
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from .models import LogEntry, TrackingState

log = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Diagnostics:
    """记忆模块：保存最近的诊断日志和点击统计"""

    def __init__(self, version: str, limit: int = 100, status_path: Optional[str] = None):
        self.version = version
        self.logs: Deque[LogEntry] = deque(maxlen=limit)
        self.status_path = Path(status_path) if status_path else None
        self.click_attempts = 0
        self.click_successes = 0
        self.click_failures = 0
        self.last_event: Optional[str] = None
        self.last_event_time: Optional[str] = None
        self.status: Dict[str, Any] = {}

    def record(self, message: str, level: int = logging.INFO):
        """追加一条日志（超出上限时丢弃最旧的）"""
        self.logs.append(LogEntry(timestamp=_utc_now(), message=message))
        log.log(level, message)

    def event(self, name: str, message: Optional[str] = None):
        """记录一个具名事件，同时写入日志"""
        self.last_event = name
        self.last_event_time = _utc_now()
        self.record(message or name)

    def breadcrumbs(self, last_n: int = 20) -> List[Dict[str, Any]]:
        return [
            {"timestamp": entry.timestamp, "message": entry.message, "category": "auto-listen"}
            for entry in list(self.logs)[-last_n:]
        ]

    def snapshot(self, state: TrackingState, enabled: bool) -> Dict[str, Any]:
        """生成可序列化的状态快照"""
        return {
            "version": self.version,
            "initialized": state.initialized,
            "enabled": enabled,
            "listenButtonCount": state.current_count,
            "isGenerating": state.is_generating,
            "isProcessing": state.is_processing,
            "clickAttempts": self.click_attempts,
            "clickSuccesses": self.click_successes,
            "clickFailures": self.click_failures,
            "lastEvent": self.last_event,
            "lastEventTime": self.last_event_time,
            "logs": [{"timestamp": e.timestamp, "message": e.message} for e in self.logs],
        }

    def export(self, state: TrackingState, enabled: bool) -> Dict[str, Any]:
        """
        刷新状态快照，并在配置了路径时写入 JSON 文件供外部查看。
        """
        self.status = self.snapshot(state, enabled)
        if self.status_path is not None:
            tmp = self.status_path.with_suffix(self.status_path.suffix + ".tmp")
            tmp.write_text(json.dumps(self.status, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self.status_path)
        return self.status
