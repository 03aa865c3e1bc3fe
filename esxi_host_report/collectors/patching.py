from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import ScanTimeoutError
from ..models import ManagedHost, PatchRecord, ReportKind
from ..patching import Baseline, Compliance, HostPatchService, ScanCoordinator, wait_for_scan
from .base import capture, format_timestamp, identity, join, last_patched

logger = logging.getLogger("esxi_report.collectors.patching")


class PatchingCollector:
    kind = ReportKind.PATCHING

    def __init__(
        self,
        probe,
        service: HostPatchService,
        coordinator: ScanCoordinator,
        baselines: List[Baseline],
        scan_interval: float = 5.0,
        scan_timeout: float = 600.0,
        sleep=None,
    ):
        self.probe = probe
        self.service = service
        self.coordinator = coordinator
        self.baselines = baselines
        self.scan_interval = scan_interval
        self.scan_timeout = scan_timeout
        self.sleep = sleep

    def _await_scan(self, host: ManagedHost) -> bool:
        task = self.coordinator.task_for(host.name)
        if task is None:
            logger.warning("[%s] no compliance scan was started", host.name)
            return False
        kwargs = {"sleep": self.sleep} if self.sleep else {}
        try:
            wait_for_scan(self.service, task, self.scan_interval, self.scan_timeout, **kwargs)
        except ScanTimeoutError as e:
            logger.warning("[%s] %s", host.name, e)
            return False
        except Exception as e:
            logger.warning("[%s] compliance scan status unavailable: %s", host.name, e)
            return False
        return True

    def collect(self, host: ManagedHost) -> PatchRecord:
        p = self.probe
        product = capture(host, "product", p.product, host)
        packages = capture(host, "software packages", p.software_packages, host)
        build = getattr(product, "build", None)

        compliance: Optional[Compliance] = None
        if self._await_scan(host):
            compliance = capture(host, "compliance", self.service.get_compliance, host, self.baselines)

        return PatchRecord(
            **identity(host),
            version=getattr(product, "version", None),
            build=build,
            image_profile=capture(host, "image profile", p.image_profile, host),
            baselines=join(b.name for b in self.baselines),
            compliance_status=compliance.status if compliance else None,
            compliant_count=len(compliance.compliant) if compliance else None,
            non_compliant_count=len(compliance.non_compliant) if compliance else None,
            non_compliant_patches=join(compliance.non_compliant) if compliance else None,
            last_patched=format_timestamp(last_patched(packages, build)),
        )
