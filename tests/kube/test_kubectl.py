import os
import subprocess
from pathlib import Path

import pytest
from jinja2 import TemplateSyntaxError

from epinio_installer.config.models import Component, Source, Value
from epinio_installer.kube.kubectl import KubectlError, KubectlRunner, render_template
from epinio_installer.observers.dispatcher import EventBus
from epinio_installer.observers.events import ComponentRetry
from epinio_installer.utils.execution import ExecutionContext


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


class ScriptedRun:
    """Returns the scripted results in order and keeps the file content kubectl would read."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.contents = []

    def __call__(self, argv, check=False, text=False, capture_output=False, env=None):
        self.calls.append(argv)
        path = argv[argv.index("--filename") + 1]
        self.contents.append(Path(path).read_text() if os.path.exists(path) else None)
        return self.results.pop(0) if self.results else DummyCP(0)


def _yaml(path, namespace="", values=()):
    return Component(id="traefik", type="yaml", namespace=namespace, source=Source(path=str(path)), values=list(values))


def _runner(**kw):
    sleeps = []
    return KubectlRunner(retry_delay=5, sleep=sleeps.append, **kw), sleeps


def test_apply_plain_file(monkeypatch, tmp_path):
    f = tmp_path / "traefik.yaml"
    f.write_text("kind: Namespace\n")
    run = ScriptedRun()
    monkeypatch.setattr(subprocess, "run", run)

    runner, _ = _runner(kubeconfig="/tmp/kc")
    runner.apply(_yaml(f, namespace="traefik"))

    assert run.calls[0] == [
        "kubectl", "--kubeconfig", "/tmp/kc",
        "apply", "--wait", "--filename", str(f), "--namespace", "traefik",
    ]


def test_apply_renders_values_to_temp_file(monkeypatch, tmp_path):
    f = tmp_path / "issuer.yaml"
    f.write_text("email: {{ Values.email }}\nserver: {{ Values.server }}\n")
    run = ScriptedRun()
    monkeypatch.setattr(subprocess, "run", run)

    runner, _ = _runner()
    runner.apply(_yaml(f, values=[Value(name="email", value="ops@example.test"), Value(name="server", value="acme")]))

    used = run.calls[0][run.calls[0].index("--filename") + 1]
    assert used != str(f)
    assert run.contents[0] == "email: ops@example.test\nserver: acme\n"
    # temp file removed after the command
    assert not os.path.exists(used)
    assert "--namespace" not in run.calls[0]


def test_apply_retries_transient_errors(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    run = ScriptedRun(
        DummyCP(1, err="The connection to the server localhost:6443 was refused - connection refused"),
        DummyCP(1, err="Error from server (ServiceUnavailable): Service Unavailable"),
        DummyCP(0),
    )
    monkeypatch.setattr(subprocess, "run", run)

    class Capture:
        def __init__(self): self.events = []
        def notify(self, ev): self.events.append(ev)

    cap = Capture()
    runner, sleeps = _runner(bus=EventBus([cap]))
    runner.apply(_yaml(f))

    assert len(run.calls) == 3
    assert sleeps == [5, 5]
    assert [e.attempt for e in cap.events if isinstance(e, ComponentRetry)] == [1, 2]


def test_apply_hard_error_is_not_retried(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    run = ScriptedRun(DummyCP(1, err='error validating data: unknown field "spec.foo"'))
    monkeypatch.setattr(subprocess, "run", run)

    runner, sleeps = _runner()
    with pytest.raises(KubectlError, match="unknown field"):
        runner.apply(_yaml(f))
    assert len(run.calls) == 1
    assert sleeps == []


def test_delete_of_missing_resources_is_success(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    run = ScriptedRun(DummyCP(1, err='Error from server (NotFound): deployments.apps "traefik" not found'))
    monkeypatch.setattr(subprocess, "run", run)

    runner, _ = _runner()
    runner.delete(_yaml(f, namespace="traefik"))  # should not raise

    assert run.calls[0][:4] == ["kubectl", "delete", "--wait", "--filename"]


def test_delete_of_missing_crd_kind_is_success(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    run = ScriptedRun(DummyCP(1, err='error: unable to recognize "a.yaml": no matches for kind "Issuer"'))
    monkeypatch.setattr(subprocess, "run", run)

    runner, _ = _runner()
    runner.delete(_yaml(f))


def test_delete_failure_raises(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    monkeypatch.setattr(subprocess, "run", ScriptedRun(DummyCP(1, err="Error from server (Forbidden): forbidden")))

    runner, _ = _runner()
    with pytest.raises(KubectlError):
        runner.delete(_yaml(f))


def test_missing_template_value_fails(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("x: {{ Values.nope }}\n")
    run = ScriptedRun()
    monkeypatch.setattr(subprocess, "run", run)

    runner, _ = _runner()
    with pytest.raises(Exception):
        runner.apply(_yaml(f, values=[Value(name="other", value="1")]))
    assert run.calls == []


def test_cancelled_run_stops_retrying(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    ctx = ExecutionContext()

    def refused(argv, check=False, text=False, capture_output=False, env=None):
        calls.append(argv)
        ctx.cancel()  # e.g. Ctrl-C while kubectl was running
        return DummyCP(1, err="dial tcp 10.0.0.1:6443: connect: connection refused")

    calls = []
    monkeypatch.setattr(subprocess, "run", refused)

    runner, sleeps = _runner()
    with pytest.raises(KubectlError, match="connection refused"):
        runner.apply(_yaml(f), ctx)

    assert len(calls) == 1
    assert sleeps == []  # the context's wait is used, not the runner's sleep


def test_retry_waits_on_the_run_context(monkeypatch, tmp_path):
    f = tmp_path / "a.yaml"
    f.write_text("{}\n")
    run = ScriptedRun(DummyCP(1, err="i/o timeout"), DummyCP(0))
    monkeypatch.setattr(subprocess, "run", run)

    runner = KubectlRunner(retry_delay=0)
    runner.delete(_yaml(f), ExecutionContext())

    assert len(run.calls) == 2


def test_retry_decision_ignores_component_id_and_path(monkeypatch, tmp_path):
    # "Gateway" and "EOF" are transient markers, but here they only name things
    d = tmp_path / "Gateway"
    d.mkdir()
    f = d / "EOF.yaml"
    f.write_text("{}\n")
    run = ScriptedRun(DummyCP(1, err='error validating data: unknown field "replicaz"'))
    monkeypatch.setattr(subprocess, "run", run)

    runner, sleeps = _runner()
    component = Component(id="api-Gateway-EOF", type="yaml", source=Source(path=str(f)))
    with pytest.raises(KubectlError) as ei:
        runner.apply(component)

    assert len(run.calls) == 1
    assert sleeps == []
    assert ei.value.output == 'error validating data: unknown field "replicaz"'


def test_go_template_syntax_is_rejected(tmp_path):
    f = tmp_path / "traefik.yaml"
    f.write_text("host: {{ .Values.domain }}\n")

    with pytest.raises(TemplateSyntaxError):
        render_template(_yaml(f, values=[Value(name="domain", value="example.test")]))
