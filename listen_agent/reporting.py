"""错误上报：构造报告并交给 sink（日志或 Sentry envelope）"""

import json
import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import aiohttp

from .memory import Diagnostics
from .models import ErrorReport

log = logging.getLogger(__name__)


class LoggingSink:
    """默认 sink：只写日志"""

    async def send(self, report: ErrorReport):
        log.error("错误报告 %s: %s\n%s", report.name, report.message, report.stack)


def envelope_url(dsn: str) -> str:
    parts = urlsplit(dsn)
    project_id = parts.path.strip("/")
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return (
        f"{parts.scheme}://{host}/api/{project_id}/envelope/"
        f"?sentry_key={parts.username}&sentry_version=7"
    )


def build_envelope(report: ErrorReport, dsn: str, version: str) -> str:
    """
    构造 Sentry envelope：header、item header、payload 三行。
    """
    event_id = uuid.uuid4().hex
    now = datetime.now(timezone.utc).isoformat()

    header = {"event_id": event_id, "sent_at": now, "dsn": dsn}
    item_header = {"type": "event", "content_type": "application/json"}
    exception: Dict[str, Any] = {"type": report.name or "Error", "value": report.message or "Unknown error"}
    if report.frames:
        exception["stacktrace"] = {"frames": report.frames}

    payload = {
        "event_id": event_id,
        "timestamp": now,
        "platform": "python",
        "level": "error",
        "release": f"gemini-auto-listen@{version}",
        "environment": "production",
        "tags": {"extension_version": version},
        "exception": {"values": [exception]},
        "breadcrumbs": {
            "values": [
                {
                    "timestamp": bc["timestamp"],
                    "message": bc["message"],
                    "category": bc.get("category", "auto-listen"),
                    "level": "info",
                }
                for bc in report.breadcrumbs
            ]
        },
        "contexts": {"runtime": {"name": "Gemini Auto-Listen"}},
        "extra": report.extra,
    }
    return "\n".join(json.dumps(part, ensure_ascii=False) for part in (header, item_header, payload))


class SentrySink:
    """通过 HTTP envelope API 发送到 Sentry"""

    def __init__(self, dsn: str, version: str, timeout: float = 10.0):
        self.dsn = dsn
        self.version = version
        self.url = envelope_url(dsn)
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, report: ErrorReport):
        body = build_envelope(report, self.dsn, self.version)
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.url, data=body.encode("utf-8")) as resp:
                text = await resp.text()
                log.info("Sentry %s: %s", resp.status, text[:200])


class ErrorReporter:
    """把异常整理成 ErrorReport 并交给 sink；sink 自身失败只记录日志"""

    def __init__(self, sink=None, diagnostics: Optional[Diagnostics] = None):
        self.sink = sink or LoggingSink()
        self.diagnostics = diagnostics

    def build(self, exc: BaseException, extra: Optional[Dict[str, Any]] = None) -> ErrorReport:
        frames = [
            {"function": fs.name, "filename": fs.filename, "lineno": fs.lineno}
            for fs in traceback.extract_tb(exc.__traceback__)
        ]
        return ErrorReport(
            name=type(exc).__name__,
            message=str(exc),
            stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            frames=frames,
            breadcrumbs=self.diagnostics.breadcrumbs() if self.diagnostics else [],
            extra=dict(extra or {}),
        )

    async def report(self, exc: BaseException, extra: Optional[Dict[str, Any]] = None) -> ErrorReport:
        report = self.build(exc, extra)
        try:
            await self.sink.send(report)
        except Exception:
            log.exception("错误上报失败")
        return report
