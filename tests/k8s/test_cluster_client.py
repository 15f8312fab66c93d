import itertools
from types import SimpleNamespace

import pytest
from kubernetes.client.rest import ApiException

from epinio_installer.k8s.client import ClusterClient
from epinio_installer.utils.execution import Cancelled, ExecutionContext


def cond(kind, status="True"):
    return SimpleNamespace(type=kind, status=status)


def obj(*conditions):
    return SimpleNamespace(status=SimpleNamespace(conditions=list(conditions)))


def items(*objs):
    return SimpleNamespace(items=list(objs))


class Sequenced:
    """Answers each call with the next scripted response; exceptions are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        r = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(r, Exception):
            raise r
        return r


def make_client(core=None, batch=None, extensions=None):
    return ClusterClient(
        core=core or SimpleNamespace(),
        batch=batch or SimpleNamespace(),
        extensions=extensions or SimpleNamespace(),
        poll_interval=0,
        clock=itertools.count(0, 5).__next__,
    )


def test_pod_ready_polls_until_condition_true():
    lister = Sequenced(items(), items(obj(cond("Ready", "False"))), items(obj(cond("Ready"))))
    cluster = make_client(core=SimpleNamespace(list_namespaced_pod=lister))

    cluster.wait_for_pod_ready(ExecutionContext(), "traefik", "app=traefik", 60)

    assert len(lister.calls) == 3
    assert lister.calls[0] == {"namespace": "traefik", "label_selector": "app=traefik"}


def test_pod_ready_times_out():
    lister = Sequenced(items())
    cluster = make_client(core=SimpleNamespace(list_namespaced_pod=lister))

    with pytest.raises(TimeoutError, match="app=traefik"):
        cluster.wait_for_pod_ready(ExecutionContext(), "traefik", "app=traefik", 12)


def test_loadbalancer_accepts_ip_or_hostname():
    pending = SimpleNamespace(status=SimpleNamespace(load_balancer=SimpleNamespace(ingress=None)))
    assigned = SimpleNamespace(
        status=SimpleNamespace(load_balancer=SimpleNamespace(ingress=[SimpleNamespace(ip=None, hostname="lb.example")]))
    )
    lister = Sequenced(items(pending), items(assigned))
    cluster = make_client(core=SimpleNamespace(list_namespaced_service=lister))

    cluster.wait_for_loadbalancer(ExecutionContext(), "traefik", "app=traefik", 60)
    assert len(lister.calls) == 2


def test_crd_missing_then_established():
    reader = Sequenced(ApiException(status=404), obj(cond("NamesAccepted")), obj(cond("Established")))
    cluster = make_client(extensions=SimpleNamespace(read_custom_resource_definition=reader))

    cluster.wait_for_crd(ExecutionContext(), "certificates.cert-manager.io", 60)

    assert len(reader.calls) == 3
    assert reader.calls[0] == {"name": "certificates.cert-manager.io"}


def test_crd_other_api_errors_propagate():
    reader = Sequenced(ApiException(status=403))
    cluster = make_client(extensions=SimpleNamespace(read_custom_resource_definition=reader))

    with pytest.raises(ApiException):
        cluster.wait_for_crd(ExecutionContext(), "certificates.cert-manager.io", 60)


def test_job_by_name():
    reader = Sequenced(ApiException(status=404), obj(), obj(cond("Complete")))
    cluster = make_client(batch=SimpleNamespace(read_namespaced_job=reader))

    cluster.wait_for_job_completed(ExecutionContext(), "epinio", "epinio-setup", 60)

    assert reader.calls[-1] == {"name": "epinio-setup", "namespace": "epinio"}


def test_job_by_label_waits_for_all_matching_jobs():
    lister = Sequenced(
        items(),
        items(obj(cond("Complete")), obj()),
        items(obj(cond("Complete")), obj(cond("Complete"))),
    )
    cluster = make_client(batch=SimpleNamespace(list_namespaced_job=lister))

    cluster.wait_for_job_completed(ExecutionContext(), "epinio", "app=setup", 60)

    assert len(lister.calls) == 3
    assert lister.calls[0]["label_selector"] == "app=setup"


def test_cancelled_context_stops_polling():
    lister = Sequenced(items())
    cluster = make_client(core=SimpleNamespace(list_namespaced_pod=lister))
    ctx = ExecutionContext()
    ctx.cancel()

    with pytest.raises(Cancelled):
        cluster.wait_for_pod_ready(ctx, "traefik", "app=traefik", 60)
    assert lister.calls == []


def test_namespace_crud_goes_to_core_api():
    calls = []
    core = SimpleNamespace(
        create_namespace=lambda body: calls.append(("create", body.metadata.name, body.metadata.labels)),
        read_namespace=lambda name: calls.append(("read", name)) or "ns",
        replace_namespace=lambda name, body: calls.append(("replace", name)),
        delete_namespace=lambda name: calls.append(("delete", name)),
    )
    cluster = make_client(core=core)

    cluster.create_namespace("epinio", {"a": "1"}, {})
    assert cluster.get_namespace("epinio") == "ns"
    cluster.update_namespace(SimpleNamespace(metadata=SimpleNamespace(name="epinio")))
    cluster.delete_namespace("epinio")

    assert calls == [
        ("create", "epinio", {"a": "1"}),
        ("read", "epinio"),
        ("replace", "epinio"),
        ("delete", "epinio"),
    ]
