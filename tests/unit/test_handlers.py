import kopf
import pytest

from floater_agent.handlers import node_event, reconcile_service, register_handlers
from floater_runtime import ProviderIDTracker, ServiceReconciler
from hcloud_floater.capabilities import ServiceLister
from hcloud_floater.engine import Outcome, ReconcileResult
from hcloud_floater.exceptions import ClusterReadError, CloudAPIError, ResourceNotFoundError
from hcloud_floater.model import Service, ServiceKey
from hcloud_floater.ownership import OWNER_NODE_ANNOTATION

SVC = ServiceKey("ns", "svc-a")


class RecordingEngine:
    """Answers every pass with ``outcome`` unless ``errors`` names the key."""

    def __init__(self, outcome=Outcome.ALREADY_ASSIGNED):
        self.outcome = outcome
        self.errors = {}
        self.calls = []

    def reconcile(self, key):
        self.calls.append(key)
        error = self.errors.get(key)
        if error is not None:
            return ReconcileResult(outcome=Outcome.FAILED, service=key, error=error)
        return ReconcileResult(outcome=self.outcome, service=key)


class Lister(ServiceLister):
    def __init__(self, services, failures=0):
        self.services = services
        self.failures = failures

    def list_services(self):
        if self.failures:
            self.failures -= 1
            raise ClusterReadError("unable to list services: 503 Service Unavailable")
        return self.services


def owned_service(name, owner):
    return Service(key=ServiceKey("ns", name), annotations={OWNER_NODE_ANNOTATION: owner})


def build_memo(engine, services=(), failures=0):
    reconciler = ServiceReconciler(engine, Lister(list(services), failures=failures))
    return kopf.Memo(reconciler=reconciler, provider_ids=ProviderIDTracker())


def node_spec(provider_id="hcloud://4242"):
    return {"providerID": provider_id} if provider_id is not None else {}


def send_node(memo, event_type, name="node-7", provider_id="hcloud://4242"):
    node_event(
        name=name,
        spec=node_spec(provider_id),
        event={"type": event_type},
        memo=memo,
    )


def test_successful_pass_returns_quietly():
    engine = RecordingEngine(Outcome.ASSIGNED)

    reconcile_service(namespace="ns", name="svc-a", memo=build_memo(engine))

    assert engine.calls == [SVC]


def test_failed_pass_is_retried_with_backoff():
    engine = RecordingEngine()
    engine.errors[SVC] = CloudAPIError("server is locked")

    with pytest.raises(kopf.TemporaryError) as excinfo:
        reconcile_service(namespace="ns", name="svc-a", memo=build_memo(engine), retry=2)

    assert excinfo.value.delay == pytest.approx(4.0)
    assert "server is locked" in str(excinfo.value)


def test_deleted_service_is_not_retried():
    engine = RecordingEngine()
    engine.errors[SVC] = ResourceNotFoundError("service", str(SVC))
    memo = build_memo(engine)

    for retry in range(3):
        reconcile_service(namespace="ns", name="svc-a", memo=memo, retry=retry)

    assert engine.calls == [SVC, SVC, SVC]


def test_missing_owner_node_is_retried():
    engine = RecordingEngine()
    engine.errors[SVC] = ResourceNotFoundError("node", "node-8")

    with pytest.raises(kopf.TemporaryError):
        reconcile_service(namespace="ns", name="svc-a", memo=build_memo(engine))


def test_node_event_reconciles_owned_services_once():
    engine = RecordingEngine()
    memo = build_memo(
        engine,
        [owned_service("svc-a", "node-7"), owned_service("svc-b", "node-8")],
    )

    send_node(memo, None)
    send_node(memo, "MODIFIED")
    send_node(memo, "MODIFIED")

    assert engine.calls == [SVC]


def test_node_provider_id_change_reconciles_again():
    engine = RecordingEngine()
    memo = build_memo(engine, [owned_service("svc-a", "node-7")])

    send_node(memo, "ADDED", provider_id=None)
    send_node(memo, "MODIFIED", provider_id="hcloud://4242")

    assert engine.calls == [SVC, SVC]


def test_node_change_survives_a_failed_listing():
    engine = RecordingEngine()
    memo = build_memo(engine, [owned_service("svc-a", "node-7")], failures=1)

    with pytest.raises(ClusterReadError):
        send_node(memo, "ADDED")
    send_node(memo, "ADDED")

    assert engine.calls == [SVC]


def test_node_change_is_retried_until_owned_services_pass():
    engine = RecordingEngine()
    engine.errors[SVC] = CloudAPIError("rate limited")
    memo = build_memo(engine, [owned_service("svc-a", "node-7")])

    send_node(memo, "ADDED")
    del engine.errors[SVC]
    send_node(memo, "MODIFIED")
    send_node(memo, "MODIFIED")

    assert engine.calls == [SVC, SVC]


def test_recreated_node_reconciles_again():
    engine = RecordingEngine()
    memo = build_memo(engine, [owned_service("svc-a", "node-7")])

    send_node(memo, "ADDED")
    send_node(memo, "DELETED")
    send_node(memo, "ADDED")

    assert engine.calls == [SVC, SVC]


def test_register_handlers_fills_the_given_registry():
    registry = kopf.OperatorRegistry()

    assert register_handlers(registry, sync_period=60.0) is registry
