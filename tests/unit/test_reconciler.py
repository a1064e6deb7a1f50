import logging
import threading
import time

import pytest
from prometheus_client import REGISTRY

from floater_runtime import ProviderIDTracker, ServiceReconciler, retry_delay, service_gone
from hcloud_floater.capabilities import ServiceLister
from hcloud_floater.engine import Outcome, ReconcileResult
from hcloud_floater.exceptions import CloudAPIError, ResourceNotFoundError
from hcloud_floater.model import Service, ServiceKey
from hcloud_floater.ownership import OWNER_NODE_ANNOTATION

SVC = ServiceKey("ns", "svc-a")
OTHER = ServiceKey("ns", "svc-b")


class StaticLister(ServiceLister):
    def __init__(self, services=()):
        self.services = list(services)

    def list_services(self):
        return self.services


class ScriptedEngine:
    def __init__(self, *outcomes, error=None):
        self.outcomes = list(outcomes)
        self.error = error or CloudAPIError("boom")
        self.calls = []

    def reconcile(self, key):
        self.calls.append(key)
        outcome = self.outcomes.pop(0)
        error = self.error if outcome is Outcome.FAILED else None
        return ReconcileResult(outcome=outcome, service=key, error=error)


class GatedEngine:
    """Blocks every pass until ``release`` is set and tracks overlap."""

    def __init__(self):
        self.release = threading.Event()
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def reconcile(self, key):
        with self._lock:
            self.calls.append(key)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.release.wait(2.0)
        with self._lock:
            self.active -= 1
        return ReconcileResult(outcome=Outcome.ALREADY_ASSIGNED, service=key)


def sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.01)
    return True


def start(reconciler, *keys):
    threads = [threading.Thread(target=reconciler.reconcile, args=(key,)) for key in keys]
    for thread in threads:
        thread.start()
    return threads


def test_passes_for_the_same_service_never_overlap():
    engine = GatedEngine()
    reconciler = ServiceReconciler(engine, StaticLister())

    threads = start(reconciler, SVC, SVC)
    assert wait_for(lambda: engine.calls)
    time.sleep(0.05)

    # the second pass waits for the first one
    assert engine.calls == [SVC]

    engine.release.set()
    for thread in threads:
        thread.join(timeout=2.0)

    assert engine.calls == [SVC, SVC]
    assert engine.max_active == 1


def test_passes_for_different_services_run_concurrently():
    engine = GatedEngine()
    reconciler = ServiceReconciler(engine, StaticLister())

    threads = start(reconciler, SVC, OTHER)
    try:
        assert wait_for(lambda: len(engine.calls) == 2)
        assert sample("floater_reconcile_in_progress") == 2
    finally:
        engine.release.set()
        for thread in threads:
            thread.join(timeout=2.0)

    assert engine.max_active == 2
    assert sample("floater_reconcile_in_progress") == 0


def test_unexpected_engine_errors_propagate_and_release_the_service():
    class ExplodingEngine:
        calls = 0

        def reconcile(self, key):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("bug")
            return ReconcileResult(outcome=Outcome.ALREADY_ASSIGNED, service=key)

    reconciler = ServiceReconciler(ExplodingEngine(), StaticLister())

    with pytest.raises(RuntimeError):
        reconciler.reconcile(SVC)

    assert reconciler.reconcile(SVC).outcome is Outcome.ALREADY_ASSIGNED
    assert sample("floater_reconcile_in_progress") == 0


def test_outcomes_are_counted():
    reconciler = ServiceReconciler(
        ScriptedEngine(Outcome.ASSIGNED, Outcome.FAILED), StaticLister()
    )
    assigned = sample("floater_assignments_total")
    failed = sample("floater_reconcile_total", {"outcome": "failed"})

    reconciler.reconcile(SVC)
    reconciler.reconcile(SVC)

    assert sample("floater_assignments_total") == assigned + 1
    assert sample("floater_reconcile_total", {"outcome": "failed"}) == failed + 1


def test_failures_are_logged_with_identifiers(caplog):
    reconciler = ServiceReconciler(ScriptedEngine(Outcome.FAILED), StaticLister())

    with caplog.at_level(logging.WARNING, logger="floater_runtime.reconciler"):
        result = reconciler.reconcile(SVC)

    assert not result.ok
    assert "reconciling service ns/svc-a failed" in caplog.text
    assert "boom" in caplog.text


def test_deleted_service_is_not_reported_as_failure(caplog):
    engine = ScriptedEngine(Outcome.FAILED, error=ResourceNotFoundError("service", str(SVC)))
    reconciler = ServiceReconciler(engine, StaticLister())

    with caplog.at_level(logging.WARNING, logger="floater_runtime.reconciler"):
        result = reconciler.reconcile(SVC)

    assert service_gone(result)
    assert caplog.text == ""


def test_missing_node_is_not_a_deleted_service():
    result = ReconcileResult(
        outcome=Outcome.FAILED,
        service=SVC,
        node="node-8",
        error=ResourceNotFoundError("node", "node-8"),
    )

    assert not service_gone(result)


def test_owned_by_filters_on_owner_annotation():
    def service(name, owner=None):
        annotations = {OWNER_NODE_ANNOTATION: owner} if owner else None
        return Service(key=ServiceKey("ns", name), annotations=annotations)

    lister = StaticLister(
        [
            service("a", owner="node-1"),
            service("b", owner="node-2"),
            service("c", owner="node-1"),
            service("plain"),
        ]
    )
    reconciler = ServiceReconciler(ScriptedEngine(), lister)

    assert reconciler.owned_by("node-1") == [ServiceKey("ns", "a"), ServiceKey("ns", "c")]
    assert reconciler.owned_by() == [
        ServiceKey("ns", "a"),
        ServiceKey("ns", "b"),
        ServiceKey("ns", "c"),
    ]


@pytest.mark.parametrize("retry, delay", [(0, 1.0), (1, 2.0), (3, 8.0), (20, 300.0), (500, 300.0)])
def test_retry_delay_grows_exponentially_up_to_the_cap(retry, delay):
    assert retry_delay(retry) == pytest.approx(delay)


def test_reconciler_uses_configured_backoff():
    reconciler = ServiceReconciler(ScriptedEngine(), StaticLister(), base_delay=0.5, max_delay=3.0)

    assert reconciler.retry_delay(1) == pytest.approx(1.0)
    assert reconciler.retry_delay(4) == pytest.approx(3.0)


def test_provider_id_tracker():
    tracker = ProviderIDTracker()

    assert tracker.changed("node-7", "hcloud://4242")
    tracker.record("node-7", "hcloud://4242")
    assert not tracker.changed("node-7", "hcloud://4242")
    assert tracker.changed("node-7", "hcloud://4343")

    tracker.forget("node-7")
    assert tracker.changed("node-7", "hcloud://4242")
