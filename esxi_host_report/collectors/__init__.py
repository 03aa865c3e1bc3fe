from __future__ import annotations

import logging
from typing import Dict, Iterable

from ..models import FactRecord, ManagedHost, RECORD_TYPES, ReportKind
from .base import Collector, capture, first_match
from .configuration import ConfigurationCollector
from .hardware import HardwareCollector
from .network import PhysicalNetworkCollector, VmkernelCollector, VSwitchCollector
from .patching import PatchingCollector

logger = logging.getLogger("esxi_report.collectors")

__all__ = [
    "Collector",
    "ConfigurationCollector",
    "FactCollector",
    "HardwareCollector",
    "PatchingCollector",
    "PhysicalNetworkCollector",
    "VSwitchCollector",
    "VmkernelCollector",
    "capture",
    "first_match",
]


class FactCollector:
    """Runs the per-kind collectors for one reachable host."""

    def __init__(self, collectors: Iterable[Collector]):
        self.collectors: Dict[ReportKind, Collector] = {c.kind: c for c in collectors}

    def collect(self, host: ManagedHost, kinds: Iterable[ReportKind]) -> Dict[ReportKind, FactRecord]:
        records: Dict[ReportKind, FactRecord] = {}
        for kind in kinds:
            collector = self.collectors.get(kind)
            if collector is None:
                logger.warning("No collector registered for %s", kind.value)
                continue
            try:
                records[kind] = collector.collect(host)
            except Exception as exc:
                # the host still gets a row for this kind
                logger.warning("[%s] %s collection failed: %s", host.name, kind.value, exc)
                records[kind] = RECORD_TYPES[kind](
                    hostname=host.name, datacenter=host.datacenter, cluster=host.cluster, vcenter=host.server
                )
        return records
