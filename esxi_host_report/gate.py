from __future__ import annotations

import logging
from typing import List, Optional

from .models import HostRef, ManagedHost, SkipRecord

logger = logging.getLogger("esxi_report.gate")

REACHABLE_STATES = ("Connected", "Maintenance")


class ReachabilityGate:
    """Re-reads each host's connection state at processing time and routes
    anything not Connected or in Maintenance to the skip list."""

    def __init__(self, inventory):
        self.inventory = inventory
        self.skipped: List[SkipRecord] = []

    def check(self, ref: HostRef) -> Optional[ManagedHost]:
        try:
            host = self.inventory.get_host(ref.name)
        except Exception as exc:
            logger.warning("[%s] state lookup failed: %s", ref.name, exc)
            host = None

        state = host.state if host is not None else ""
        if host is not None and state in REACHABLE_STATES:
            return host

        logger.warning("[%s] skipped, connection state '%s'", ref.name, state)
        self.skipped.append(SkipRecord(hostname=ref.name, connection_state=state or ""))
        return None
