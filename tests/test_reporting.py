import asyncio
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from listen_agent.memory import Diagnostics
from listen_agent.models import ErrorReport
from listen_agent.reporting import ErrorReporter, build_envelope, envelope_url

DSN = "https://publickey@o123.ingest.us.sentry.io/4567"


def _raise_and_catch() -> Exception:
    try:
        raise ValueError("bad label")
    except ValueError as e:
        return e


def test_envelope_url_is_derived_from_dsn() -> None:
    assert envelope_url(DSN) == (
        "https://o123.ingest.us.sentry.io/api/4567/envelope/?sentry_key=publickey&sentry_version=7"
    )


def test_envelope_has_header_item_and_payload_lines() -> None:
    report = ErrorReport(
        name="ValueError",
        message="bad label",
        stack="Traceback ...",
        frames=[{"function": "perform", "filename": "controller.py", "lineno": 10}],
        breadcrumbs=[{"timestamp": "2026-01-01T00:00:00+00:00", "message": "click"}],
        extra={"source": "timer"},
    )

    header, item, payload = [json.loads(line) for line in build_envelope(report, DSN, "4.6").split("\n")]

    assert header["dsn"] == DSN
    assert header["event_id"] == payload["event_id"]
    assert item == {"type": "event", "content_type": "application/json"}
    assert payload["release"] == "gemini-auto-listen@4.6"
    assert payload["tags"] == {"extension_version": "4.6"}
    assert payload["exception"]["values"][0]["type"] == "ValueError"
    assert payload["exception"]["values"][0]["stacktrace"]["frames"][0]["function"] == "perform"
    assert payload["breadcrumbs"]["values"][0]["category"] == "auto-listen"
    assert payload["extra"] == {"source": "timer"}


def test_reporter_builds_report_with_breadcrumbs() -> None:
    diagnostics = Diagnostics("4.6")
    diagnostics.record("first")
    diagnostics.record("second")
    reporter = ErrorReporter(diagnostics=diagnostics)

    report = reporter.build(_raise_and_catch(), {"source": "mutation"})

    assert report.name == "ValueError"
    assert report.message == "bad label"
    assert "ValueError: bad label" in report.stack
    assert report.frames[-1]["function"] == "_raise_and_catch"
    assert [bc["message"] for bc in report.breadcrumbs] == ["first", "second"]
    assert report.extra == {"source": "mutation"}


def test_failing_sink_does_not_propagate() -> None:
    class BrokenSink:
        async def send(self, report: ErrorReport) -> None:
            raise ConnectionError("offline")

    reporter = ErrorReporter(BrokenSink())

    report = asyncio.run(reporter.report(_raise_and_catch()))

    assert report.name == "ValueError"
