from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .models import HostRef, HostSelector, SelectorKind

logger = logging.getLogger("esxi_report.resolver")

ScopeHook = Callable[[SelectorKind, str, List[HostRef]], None]


@dataclass
class Resolution:
    hosts: List[HostRef] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class ScopeResolver:
    """
    Turns a HostSelector into an ordered list of HostRef.

    Each cluster or datacenter contributes its hosts sorted by name; groups are
    concatenated in the order they were requested and duplicates are kept.
    Explicit host names are not checked here; the reachability gate does that.
    """

    def __init__(self, inventory, on_scope: Optional[ScopeHook] = None):
        self.inventory = inventory
        self.on_scope = on_scope

    def resolve(self, selector: HostSelector) -> Resolution:
        result = Resolution()
        if selector.kind == SelectorKind.HOSTS:
            self._resolve_explicit(selector.names, result)
        elif selector.kind == SelectorKind.CLUSTERS:
            self._resolve_groups(selector.names, SelectorKind.CLUSTERS, self.inventory.list_hosts_by_cluster, result)
        elif selector.kind == SelectorKind.DATACENTERS:
            self._resolve_groups(
                selector.names, SelectorKind.DATACENTERS, self.inventory.list_hosts_by_datacenter, result
            )
        else:
            self._resolve_all(result)
        logger.info("Resolved %d host(s) from %s selector", len(result.hosts), selector.kind.value)
        return result

    def _warn(self, result: Resolution, message: str):
        logger.warning(message)
        result.warnings.append(message)

    def _notify(self, kind: SelectorKind, name: str, refs: List[HostRef]):
        if self.on_scope and refs:
            self.on_scope(kind, name, refs)

    def _resolve_explicit(self, names, result: Resolution):
        for raw in names:
            name = (raw or "").strip()
            if not name:
                self._warn(result, "Ignoring blank host entry")
                continue
            ref = HostRef(name=name, group=f"host:{name}")
            result.hosts.append(ref)
            self._notify(SelectorKind.HOSTS, name, [ref])

    def _resolve_groups(self, names, kind: SelectorKind, lookup, result: Resolution):
        label = "Cluster" if kind == SelectorKind.CLUSTERS else "Datacenter"
        prefix = "cluster" if kind == SelectorKind.CLUSTERS else "datacenter"
        for raw in names:
            name = (raw or "").strip()
            if not name:
                self._warn(result, f"Ignoring blank {label.lower()} entry")
                continue
            try:
                found = lookup(name)
            except Exception as exc:
                self._warn(result, f"{label} '{name}' lookup failed: {exc}")
                continue
            if not found:
                self._warn(result, f"{label} '{name}' not found or contains no hosts")
                continue
            refs = [HostRef(name=h.name, group=f"{prefix}:{name}") for h in found]
            result.hosts.extend(refs)
            self._notify(kind, name, refs)

    def _resolve_all(self, result: Resolution):
        try:
            found = self.inventory.list_all_hosts()
        except Exception as exc:
            self._warn(result, f"Listing all hosts failed: {exc}")
            return
        refs = [HostRef(name=h.name, group="all") for h in found]
        result.hosts.extend(refs)
        self._notify(SelectorKind.ALL, "all", refs)
