from __future__ import annotations

import fnmatch
import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import BaselineNotFoundError, ReportError, ScanTimeoutError
from .models import HostRef, ManagedHost, SelectorKind

logger = logging.getLogger("esxi_report.patching")


def version_key(version: Any) -> Tuple[int, ...]:
    """'7.0.3-0.105.22348816' -> (7, 0, 3, 0, 105, 22348816)"""
    return tuple(int(n) for n in re.findall(r"\d+", str(version or "")))


@dataclass(frozen=True)
class Baseline:
    name: str
    depot_urls: Tuple[str, ...] = ()
    packages: Tuple[Tuple[str, str], ...] = ()


@dataclass
class BaselineCatalog:
    """Named patch baselines loaded from a JSON file."""

    baselines: Dict[str, Baseline] = field(default_factory=dict)

    @classmethod
    def load(cls, path) -> "BaselineCatalog":
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ReportError("Baselines file not found", details=str(path))
        except json.JSONDecodeError as e:
            raise ReportError("Baselines file is not valid JSON", details=f"{path}: {e}")
        if not isinstance(raw, dict):
            raise ReportError("Baselines file must map baseline names to definitions", details=str(path))

        catalog = cls()
        for name, body in raw.items():
            body = body or {}
            catalog.baselines[name] = Baseline(
                name=name,
                depot_urls=tuple(body.get("depot_urls") or ()),
                packages=tuple(sorted((body.get("packages") or {}).items())),
            )
        logger.debug("Loaded %d baseline(s) from %s", len(catalog.baselines), path)
        return catalog

    def find(self, pattern: str) -> List[Baseline]:
        """Case-insensitive shell-wildcard match on baseline names."""
        wanted = (pattern or "").strip().lower()
        found = [b for name, b in self.baselines.items() if fnmatch.fnmatchcase(name.lower(), wanted)]
        if not found:
            raise BaselineNotFoundError(pattern)
        return found


@dataclass
class Compliance:
    baselines: List[str] = field(default_factory=list)
    compliant: List[str] = field(default_factory=list)
    non_compliant: List[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "Non-Compliant" if self.non_compliant else "Compliant"


@dataclass
class ScanTask:
    entity: str
    handle: Any = None


class HostPatchService:
    """
    Baseline attachment, compliance scans and compliance evaluation.

    Baselines are associated per host name for the run; the scan itself is the
    host's patch manager checking the baseline depots.
    """

    def __init__(self, probe):
        self.probe = probe
        self.attached: Dict[str, List[Baseline]] = {}

    def attach_baseline(self, entity: ManagedHost, baseline: Baseline):
        current = self.attached.setdefault(entity.name, [])
        if baseline not in current:
            current.append(baseline)
            logger.debug("[%s] attached baseline %s", entity.name, baseline.name)

    def trigger_scan(self, entity: ManagedHost) -> ScanTask:
        urls = [u for b in self.attached.get(entity.name, []) for u in b.depot_urls]
        manager = entity.handle.configManager.patchManager
        handle = manager.ScanHostPatchV2_Task(metaUrls=urls or None, bundleUrls=None, spec=None)
        logger.info("[%s] compliance scan started", entity.name)
        return ScanTask(entity=entity.name, handle=handle)

    def poll_task(self, task: ScanTask) -> int:
        info = task.handle.info
        state = str(getattr(info, "state", "") or "")
        if state == "success":
            return 100
        if state == "error":
            error = getattr(info, "error", None)
            raise ReportError(f"Scan of {task.entity} failed", details=getattr(error, "msg", None) or error)
        return int(getattr(info, "progress", None) or 0)

    def get_compliance(self, host: ManagedHost, baselines: List[Baseline]) -> Compliance:
        installed = {p.name: p.version for p in self.probe.software_packages(host)}
        result = Compliance(baselines=[b.name for b in baselines])
        for baseline in baselines:
            for vib, minimum in baseline.packages:
                have = installed.get(vib)
                if have is not None and version_key(have) >= version_key(minimum):
                    result.compliant.append(vib)
                else:
                    result.non_compliant.append(vib)
        return result


def wait_for_scan(
    service: HostPatchService,
    task: ScanTask,
    interval: float = 5.0,
    timeout: float = 600.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Poll a scan on a fixed interval until 100%, or raise ScanTimeoutError."""
    deadline = clock() + timeout
    while True:
        progress = service.poll_task(task)
        if progress >= 100:
            return progress
        if clock() >= deadline:
            raise ScanTimeoutError(task.entity, timeout, progress)
        logger.debug("[%s] scan at %d%%", task.entity, progress)
        sleep(interval)


class ScanCoordinator:
    """Attaches baselines and starts scans as scope groups are resolved."""

    def __init__(self, inventory, service: HostPatchService, baselines: List[Baseline]):
        self.inventory = inventory
        self.service = service
        self.baselines = baselines
        self.tasks: Dict[str, ScanTask] = {}

    def on_scope(self, kind: SelectorKind, name: str, refs: List[HostRef]):
        logger.info("Starting compliance scans for %s '%s' (%d host(s))", kind.value, name, len(refs))
        for ref in refs:
            if ref.name in self.tasks:
                continue
            try:
                host = self.inventory.get_host(ref.name)
                if host is None:
                    continue
                for baseline in self.baselines:
                    self.service.attach_baseline(host, baseline)
                self.tasks[ref.name] = self.service.trigger_scan(host)
            except Exception as exc:
                logger.warning("[%s] could not start compliance scan: %s", ref.name, exc)

    def task_for(self, name: str) -> Optional[ScanTask]:
        return self.tasks.get(name)
