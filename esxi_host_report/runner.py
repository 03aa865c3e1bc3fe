import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .aggregator import ReportAggregator
from .collectors import (
    ConfigurationCollector,
    FactCollector,
    HardwareCollector,
    PatchingCollector,
    PhysicalNetworkCollector,
    VmkernelCollector,
    VSwitchCollector,
)
from .config import Config
from .errors import ReportError
from .gate import ReachabilityGate
from .host_probe import HostProbe
from .inventory import VSphereInventory
from .models import ReportCollection, ReportKind, SkipRecord
from .patching import BaselineCatalog, HostPatchService, ScanCoordinator
from .resolver import ScopeResolver
from .session import connect
from .writers import ReportSink, format_table

logger = logging.getLogger("esxi_report.runner")


@dataclass
class RunResult:
    collections: List[ReportCollection] = field(default_factory=list)
    skipped: List[SkipRecord] = field(default_factory=list)
    exported: List[Path] = field(default_factory=list)

    def collection(self, kind: ReportKind) -> Optional[ReportCollection]:
        return next((c for c in self.collections if c.kind == kind), None)


class Runner:
    """
    One reporting run: resolve scope, gate each host, collect, aggregate, export.

    Collaborators default to the live vSphere implementations and can be
    replaced for testing.
    """

    def __init__(
        self,
        config: Config,
        session=None,
        inventory=None,
        probe=None,
        patch_service: Optional[HostPatchService] = None,
        catalog: Optional[BaselineCatalog] = None,
        sink: Optional[ReportSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        out: Callable[[str], None] = print,
    ):
        self.config = config
        self.session = session
        self.inventory = inventory
        self.probe = probe
        self.patch_service = patch_service
        self.catalog = catalog
        self.sink = sink
        self.clock = clock
        self.sleep = sleep
        self.out = out

    def _connect(self):
        return connect(
            self.config.servers,
            self.config.username,
            self.config.password,
            port=self.config.port,
            verify_ssl=self.config.verify_ssl,
        )

    def _default_inventory(self, session):
        return VSphereInventory(session)

    def _default_probe(self):
        return HostProbe(
            wsman_port=self.config.wsman_port,
            wsman_timeout=self.config.wsman_timeout,
            verify_ssl=self.config.verify_ssl,
        )

    def _load_baselines(self):
        if not self.config.baseline:
            raise ReportError("The patching report needs --baseline")
        catalog = self.catalog or BaselineCatalog.load(self.config.baselines_file)
        baselines = catalog.find(self.config.baseline)
        logger.info("Using baseline(s): %s", ", ".join(b.name for b in baselines))
        return baselines

    def _build_collectors(self, probe, coordinator, service, baselines):
        collectors = [
            HardwareCollector(probe),
            ConfigurationCollector(probe, clock=self.clock),
            PhysicalNetworkCollector(probe),
            VmkernelCollector(probe),
            VSwitchCollector(probe),
        ]
        if coordinator is not None:
            collectors.append(
                PatchingCollector(
                    probe,
                    service,
                    coordinator,
                    baselines,
                    scan_interval=self.config.scan_interval,
                    scan_timeout=self.config.scan_timeout,
                    sleep=self.sleep,
                )
            )
        return FactCollector(collectors)

    def execute(self) -> RunResult:
        start = time.time()
        for warning in self.config.warnings:
            logger.warning(warning)

        owns_session = self.session is None
        session = self.session if self.session is not None else self._connect()
        try:
            session.require()
            return self._run(session, start)
        finally:
            if owns_session:
                session.close()

    def _run(self, session, start: float) -> RunResult:
        cfg = self.config
        reports = list(cfg.reports)
        inventory = self.inventory or self._default_inventory(session)
        probe = self.probe or self._default_probe()

        coordinator = None
        service = None
        baselines = []
        if ReportKind.PATCHING in reports:
            baselines = self._load_baselines()
            service = self.patch_service or HostPatchService(probe)
            coordinator = ScanCoordinator(inventory, service, baselines)

        resolver = ScopeResolver(inventory, on_scope=coordinator.on_scope if coordinator else None)
        resolution = resolver.resolve(cfg.selector)

        gate = ReachabilityGate(inventory)
        collector = self._build_collectors(probe, coordinator, service, baselines)
        aggregator = ReportAggregator(reports)

        total = len(resolution.hosts)
        for i, ref in enumerate(resolution.hosts, 1):
            logger.info(f"[{i}/{total}] Processing {ref.name}")
            host = gate.check(ref)
            if host is None:
                continue
            records = collector.collect(host, reports)
            for kind in reports:
                aggregator.add(records[kind])

        result = RunResult(collections=aggregator.collections(), skipped=list(gate.skipped))
        if aggregator.is_empty():
            self.out("No information gathered")
        else:
            sink = self.sink or ReportSink(cfg.output, cfg.folder)
            result.exported = sink.emit(result.collections)

        self._print_skipped(result.skipped)
        self._print_summary(result, total, time.time() - start)
        return result

    def _print_skipped(self, skipped: List[SkipRecord]):
        self.out("\n=== Skipped Hosts ===")
        rows = [[s.hostname, s.connection_state] for s in skipped]
        for line in format_table(["Hostname", "Connection State"], rows):
            self.out(line)
        self.out("=====================\n")

    def _print_summary(self, result: RunResult, total: int, duration: float):
        self.out("\n=== Run Summary ===")
        self.out(f"Hosts resolved: {total}")
        self.out(f"Hosts skipped:  {len(result.skipped)}")
        for c in result.collections:
            self.out(f"{c.kind.title}: rows={len(c)}")
        for path in result.exported:
            self.out(f"Exported: {path}")
        self.out(f"Duration: {duration:.1f}s")
        self.out("===================\n")
