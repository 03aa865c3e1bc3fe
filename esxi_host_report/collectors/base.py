from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Protocol, Sequence, Tuple

from ..models import FactRecord, ManagedHost, ReportKind

logger = logging.getLogger("esxi_report.collectors")

Probe = Tuple[str, Callable[[], Any]]


class Collector(Protocol):
    kind: ReportKind

    def collect(self, host: ManagedHost) -> FactRecord:
        ...


def is_empty(val: Any) -> bool:
    if val is None:
        return True
    if isinstance(val, str):
        if val.strip() == "":
            return True
        if val.strip().lower() in ("null", "none"):
            return True
    if isinstance(val, (list, tuple, dict, set)) and not val:
        return True
    return False


def capture(host: ManagedHost, label: str, fn: Callable[..., Any], *args, default: Any = None) -> Any:
    """Run one sub-query; a failure is logged and becomes `default`."""
    try:
        return fn(*args)
    except Exception as exc:
        logger.warning("[%s] %s unavailable: %s", host.name, label, exc)
        return default


def first_match(host: ManagedHost, probes: Sequence[Probe]) -> Tuple[Optional[str], Any]:
    """
    Try probes in order and return (label, result) for the first non-empty one.

    Results are never merged; a probe that raises counts as empty.
    """
    for label, probe in probes:
        result = capture(host, label, probe)
        if not is_empty(result):
            return label, result
    return None, None


def join(values: Optional[Iterable[Any]], sep: str = ";") -> Optional[str]:
    if values is None:
        return None
    parts = [str(v) for v in values if not is_empty(v)]
    return sep.join(parts) if parts else None


def unique(values: Iterable[Any]) -> list:
    seen = []
    for v in values:
        if not is_empty(v) and v not in seen:
            seen.append(v)
    return seen


def identity(host: ManagedHost) -> dict:
    return {
        "hostname": host.name,
        "datacenter": host.datacenter,
        "cluster": host.cluster,
        "vcenter": host.server,
    }


def install_type(boot: Optional[dict]) -> Optional[str]:
    """Embedded / Installable / PXE Stateless / PXE from boot device metadata."""
    if not boot:
        return None
    uuid = boot.get("BootFilesystemUUID")
    if uuid:
        if len(uuid) > 6 and uuid[6].lower() == "e":
            return "Embedded"
        return "Installable"
    if boot.get("StatelessBootNIC"):
        return "PXE Stateless"
    if boot.get("BootNIC"):
        return "PXE"
    return None


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def format_uptime(boot_time: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    if boot_time is None:
        return None
    now = _aware(now or datetime.now(timezone.utc))
    delta = now - _aware(boot_time)
    if delta.total_seconds() < 0:
        return None
    hours, rem = divmod(delta.seconds, 3600)
    return f"{delta.days} Days, {hours} Hours, {rem // 60} Minutes"


def format_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def _build_number(build: Any) -> Optional[str]:
    match = re.search(r"\d+", str(build or ""))
    return match.group(0) if match else None


def last_patched(packages: Optional[Sequence[Any]], build: Any) -> Optional[datetime]:
    """
    Install date of the newest package belonging to the running build.

    Packages whose version carries the build number win; without any such
    package the newest install date overall is used.
    """
    dated = [p for p in packages or [] if getattr(p, "installDate", None) is not None]
    if not dated:
        return None
    number = _build_number(build)
    if number:
        matching = [p for p in dated if number in str(getattr(p, "version", "") or "")]
        if matching:
            dated = matching
    return max(_aware(p.installDate) for p in dated)
