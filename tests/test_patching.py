from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from conftest import FakeInventory, FakeProbe, make_host

from esxi_host_report.collectors import FactCollector
from esxi_host_report.collectors.patching import PatchingCollector
from esxi_host_report.errors import BaselineNotFoundError, ReportError, ScanTimeoutError
from esxi_host_report.models import HostRef, ReportKind, SelectorKind
from esxi_host_report.patching import (
    Baseline,
    BaselineCatalog,
    HostPatchService,
    ScanCoordinator,
    ScanTask,
    version_key,
    wait_for_scan,
)

CATALOG = {
    "ESXi 7.0U3 Critical": {
        "depot_urls": ["https://depot.lab.local/index.xml"],
        "packages": {"esx-base": "7.0.3-0.105.22348816", "i40en": "1.15.0"},
    },
    "ESXi 8.0 Critical": {"packages": {"esx-base": "8.0.2-0.0.22380479"}},
}


@pytest.fixture
def catalog(tmp_path):
    path = tmp_path / "baselines.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")
    return BaselineCatalog.load(path)


class ProgressService:
    """Reports the queued progress values, one per poll."""

    def __init__(self, values):
        self.values = list(values)
        self.polls = 0

    def poll_task(self, task):
        self.polls += 1
        return self.values.pop(0) if self.values else 0


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def test_catalog_find_is_case_insensitive_wildcard(catalog):
    found = catalog.find("esxi 7.0*")
    assert [b.name for b in found] == ["ESXi 7.0U3 Critical"]
    assert found[0].depot_urls == ("https://depot.lab.local/index.xml",)
    assert len(catalog.find("*critical")) == 2


def test_catalog_find_without_match_is_fatal(catalog):
    with pytest.raises(BaselineNotFoundError) as exc:
        catalog.find("ESXi 6.5*")
    assert exc.value.pattern == "ESXi 6.5*"


def test_catalog_load_missing_file(tmp_path):
    with pytest.raises(ReportError):
        BaselineCatalog.load(tmp_path / "nope.json")


def test_version_key_orders_numerically():
    assert version_key("7.0.3-0.105.22348816") > version_key("7.0.3-0.20.19193900")
    assert version_key("1.10") > version_key("1.9")


def test_wait_for_scan_polls_on_fixed_interval_until_done():
    clock = FakeClock()
    service = ProgressService([0, 40, 90, 100])

    progress = wait_for_scan(service, ScanTask("h1"), interval=5, timeout=60, sleep=clock.sleep, clock=clock)

    assert progress == 100
    assert service.polls == 4
    assert clock.now == 15


def test_wait_for_scan_times_out():
    clock = FakeClock()
    service = ProgressService([10] * 100)

    with pytest.raises(ScanTimeoutError) as exc:
        wait_for_scan(service, ScanTask("h1"), interval=5, timeout=20, sleep=clock.sleep, clock=clock)

    assert exc.value.progress == 10
    assert clock.now == 20


def test_poll_task_maps_task_states():
    service = HostPatchService(FakeProbe())
    running = ScanTask("h1", SimpleNamespace(info=SimpleNamespace(state="running", progress=35)))
    queued = ScanTask("h1", SimpleNamespace(info=SimpleNamespace(state="queued", progress=None)))
    done = ScanTask("h1", SimpleNamespace(info=SimpleNamespace(state="success", progress=None)))
    failed = ScanTask(
        "h1", SimpleNamespace(info=SimpleNamespace(state="error", error=SimpleNamespace(msg="depot unreachable")))
    )

    assert service.poll_task(running) == 35
    assert service.poll_task(queued) == 0
    assert service.poll_task(done) == 100
    with pytest.raises(ReportError, match="depot unreachable"):
        service.poll_task(failed)


def test_compliance_against_baseline(catalog):
    service = HostPatchService(FakeProbe())
    compliance = service.get_compliance(make_host("h1"), catalog.find("ESXi 7.0*"))

    assert compliance.compliant == ["esx-base"]
    assert compliance.non_compliant == ["i40en"]
    assert compliance.status == "Non-Compliant"


def test_trigger_scan_uses_attached_depots(catalog):
    calls = []
    manager = SimpleNamespace(ScanHostPatchV2_Task=lambda **kw: calls.append(kw) or "task-1")
    host = make_host("h1")
    host.handle = SimpleNamespace(configManager=SimpleNamespace(patchManager=manager))
    service = HostPatchService(FakeProbe())

    for baseline in catalog.find("ESXi 7.0*"):
        service.attach_baseline(host, baseline)
    task = service.trigger_scan(host)

    assert task == ScanTask("h1", "task-1")
    assert calls[0]["metaUrls"] == ["https://depot.lab.local/index.xml"]


class RecordingService:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.attached = []
        self.triggered = []

    def attach_baseline(self, entity, baseline):
        self.attached.append((entity.name, baseline.name))

    def trigger_scan(self, entity):
        if entity.name in self.fail_for:
            raise RuntimeError("host disconnected")
        self.triggered.append(entity.name)
        return ScanTask(entity.name)


def test_coordinator_starts_one_scan_per_host():
    inventory = FakeInventory(hosts=[make_host("a"), make_host("b"), make_host("c")])
    service = RecordingService(fail_for={"c"})
    coordinator = ScanCoordinator(inventory, service, [Baseline("B1")])

    coordinator.on_scope(SelectorKind.CLUSTERS, "prod", [HostRef("a"), HostRef("b"), HostRef("c")])
    coordinator.on_scope(SelectorKind.CLUSTERS, "dup", [HostRef("a")])

    assert service.triggered == ["a", "b"]
    assert service.attached == [("a", "B1"), ("b", "B1"), ("c", "B1")]
    assert coordinator.task_for("a") == ScanTask("a")
    assert coordinator.task_for("c") is None


def _patch_collector(service, tasks, baselines, timeout=30):
    coordinator = ScanCoordinator(FakeInventory(), service, baselines)
    coordinator.tasks.update(tasks)
    clock = FakeClock()
    return PatchingCollector(
        FakeProbe(), service, coordinator, baselines, scan_interval=5, scan_timeout=timeout, sleep=clock.sleep
    )


def test_patching_record_after_scan(catalog):
    baselines = catalog.find("ESXi 7.0*")
    service = HostPatchService(FakeProbe())
    done = ScanTask("h1", SimpleNamespace(info=SimpleNamespace(state="success")))

    rec = _patch_collector(service, {"h1": done}, baselines).collect(make_host("h1"))

    assert rec.baselines == "ESXi 7.0U3 Critical"
    assert rec.compliance_status == "Non-Compliant"
    assert rec.compliant_count == 1
    assert rec.non_compliant_count == 1
    assert rec.non_compliant_patches == "i40en"
    assert rec.last_patched == "2024-03-01 12:00:00"


def test_patching_record_survives_scan_timeout(catalog):
    baselines = catalog.find("ESXi 7.0*")
    service = HostPatchService(FakeProbe())
    stuck = ScanTask("h1", SimpleNamespace(info=SimpleNamespace(state="running", progress=50)))
    collector = _patch_collector(service, {"h1": stuck}, baselines, timeout=0)

    rec = collector.collect(make_host("h1"))

    assert rec.hostname == "h1"
    assert rec.version == "7.0.3"
    assert rec.compliance_status is None
    assert rec.compliant_count is None


class ExpiredTask:
    @property
    def info(self):
        raise RuntimeError("ManagedObjectNotFound: task expired")


def test_patching_record_survives_unreadable_scan_task(catalog):
    baselines = catalog.find("ESXi 7.0*")
    service = HostPatchService(FakeProbe())
    collector = _patch_collector(service, {"h1": ScanTask("h1", ExpiredTask())}, baselines)

    records = FactCollector([collector]).collect(make_host("h1"), [ReportKind.PATCHING])

    rec = records[ReportKind.PATCHING]
    assert rec.version == "7.0.3"
    assert rec.build == "22348816"
    assert rec.last_patched == "2024-03-01 12:00:00"
    assert rec.baselines == "ESXi 7.0U3 Critical"
    assert rec.compliance_status is None
