from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Tuple

from pyVmomi import vim

from .models import ManagedHost
from .session import Endpoint, SessionContext

logger = logging.getLogger("esxi_report.inventory")

STATE_NAMES = {
    "connected": "Connected",
    "disconnected": "Disconnected",
    "notResponding": "NotResponding",
}


@contextmanager
def _container_view(content, root, types) -> Iterator[list]:
    view = content.viewManager.CreateContainerView(root, types, True)
    try:
        yield list(view.view)
    finally:
        try:
            view.Destroy()
        except Exception:
            logger.debug("Error destroying container view", exc_info=True)


def _cluster_name(host) -> Optional[str]:
    parent = getattr(host, "parent", None)
    if isinstance(parent, vim.ClusterComputeResource):
        return getattr(parent, "name", None)
    return None


def _datacenter_name(host) -> Optional[str]:
    current = getattr(host, "parent", None)
    while current is not None:
        if isinstance(current, vim.Datacenter):
            return getattr(current, "name", None)
        current = getattr(current, "parent", None)
    return None


def host_state(host) -> str:
    """Map the runtime connection state onto Connected/Maintenance/Disconnected/NotResponding."""
    runtime = getattr(host, "runtime", None)
    raw = str(getattr(runtime, "connectionState", "") or "")
    if raw == "connected" and getattr(runtime, "inMaintenanceMode", False):
        return "Maintenance"
    return STATE_NAMES.get(raw, raw)


class VSphereInventory:
    """Directory service over every endpoint in the session."""

    def __init__(self, session: SessionContext):
        self.session = session

    def _managed(self, host, endpoint: Endpoint) -> ManagedHost:
        return ManagedHost(
            name=getattr(host, "name", "") or "",
            state=host_state(host),
            cluster=_cluster_name(host),
            datacenter=_datacenter_name(host),
            server=endpoint.server,
            handle=host,
        )

    def _objects(self, types) -> Iterable[Tuple[Endpoint, object]]:
        for endpoint in self.session.endpoints:
            content = endpoint.content
            with _container_view(content, content.rootFolder, types) as objs:
                for obj in objs:
                    yield endpoint, obj

    def _sorted(self, hosts: List[ManagedHost]) -> List[ManagedHost]:
        return sorted(hosts, key=lambda h: h.name.lower())

    def list_hosts_by_cluster(self, name: str) -> List[ManagedHost]:
        hosts: List[ManagedHost] = []
        for endpoint, cluster in self._objects([vim.ClusterComputeResource]):
            if getattr(cluster, "name", None) != name:
                continue
            for host in getattr(cluster, "host", []) or []:
                hosts.append(self._managed(host, endpoint))
        return self._sorted(hosts)

    def list_hosts_by_datacenter(self, name: str) -> List[ManagedHost]:
        hosts: List[ManagedHost] = []
        for endpoint, dc in self._objects([vim.Datacenter]):
            if getattr(dc, "name", None) != name:
                continue
            with _container_view(endpoint.content, dc.hostFolder, [vim.HostSystem]) as found:
                hosts.extend(self._managed(h, endpoint) for h in found)
        return self._sorted(hosts)

    def list_all_hosts(self) -> List[ManagedHost]:
        hosts = [self._managed(h, ep) for ep, h in self._objects([vim.HostSystem])]
        return self._sorted(hosts)

    def get_host(self, name: str) -> Optional[ManagedHost]:
        wanted = name.lower()
        for endpoint, host in self._objects([vim.HostSystem]):
            if (getattr(host, "name", "") or "").lower() == wanted:
                return self._managed(host, endpoint)
        return None
