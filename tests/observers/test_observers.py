import json
import logging

from epinio_installer.observers.console import ConsoleObserver
from epinio_installer.observers.dispatcher import EventBus
from epinio_installer.observers.events import (
    CheckTimedOut,
    ComponentFailed,
    ComponentRetry,
    ComponentStarted,
    PlanComputed,
    PlanFailed,
    WalkSummary,
    new_ctx,
    stamp,
)
from epinio_installer.observers.jsonfile import JsonFileObserver
from epinio_installer.observers.logger import LoggerObserver

CTX = new_ctx(env="test", context="kind-epinio", run_id="run-1")


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


class Broken:
    def notify(self, ev):
        raise RuntimeError("observer blew up")


def test_new_ctx_generates_run_id_and_stamp_refreshes_ts_only():
    ctx = new_ctx(env="dev", context=None)
    assert ctx["run_id"] and ctx["env"] == "dev" and ctx["context"] is None

    stamped = stamp(CTX)
    assert stamped["run_id"] == "run-1" and stamped["context"] == "kind-epinio"
    assert stamped is not CTX


def test_failing_observer_does_not_stop_others():
    cap = Capture()
    bus = EventBus([Broken(), cap])

    bus.emit(PlanComputed(order=["a"], **CTX))

    assert len(cap.events) == 1


def test_console_format():
    out = []
    console = ConsoleObserver(echo=out.append)

    console.notify(PlanComputed(order=["linkerd", "traefik"], **CTX))
    console.notify(ComponentStarted(id="traefik", namespace="traefik", type="helm", direction="uninstall", **CTX))
    console.notify(ComponentRetry(id="kubed", attempt=2, error="connection refused\nmore", **CTX))
    console.notify(ComponentFailed(id="kubed", error="boom", **CTX))
    console.notify(CheckTimedOut(id="epinio", check="job", timeout_s=180, **CTX))
    console.notify(WalkSummary(direction="install", done=2, failed=1, pending=3, cancelled=False, **CTX))
    console.notify(PlanFailed(error="cycle", **CTX))  # no console line

    assert out == [
        "Planned order: linkerd, traefik",
        "  Removing traefik (helm) ...",
        "  ↻ kubed retry #2: connection refused",
        "  ✗ kubed failed: boom",
        "    job check for epinio timed out after 180s",
        "install: failed (done=2 failed=1 pending=3)",
    ]


def test_json_file_observer_writes_one_line_per_event(tmp_path):
    path = tmp_path / "nested" / "run.jsonl"
    obs = JsonFileObserver(path)

    obs.notify(PlanComputed(order=["a", "b"], **CTX))
    obs.notify(ComponentFailed(id="b", error="boom", **CTX))

    lines = [json.loads(line) for line in path.read_text().splitlines()]
    assert [l["type"] for l in lines] == ["PlanComputed", "ComponentFailed"]
    assert lines[0]["order"] == ["a", "b"]
    assert lines[1]["run_id"] == "run-1"


def test_logger_observer_logs_at_debug(caplog):
    logger = logging.getLogger("observer_under_test")
    with caplog.at_level(logging.DEBUG, logger=logger.name):
        LoggerObserver(logger).notify(ComponentFailed(id="b", error="boom", **CTX))

    assert "[EVENT] ComponentFailed" in caplog.text
    assert "id=b" in caplog.text
