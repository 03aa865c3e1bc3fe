from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..models import ManagedHost, PhysicalNetworkRecord, ReportKind, VmkernelRecord, VSwitchRecord
from .base import capture, first_match, identity, join, unique

logger = logging.getLogger("esxi_report.collectors.network")


def _pnic_names(net) -> Dict[str, str]:
    return {p.key: getattr(p, "device", None) for p in getattr(net, "pnic", []) or [] if getattr(p, "key", None)}


def _switch_by_pnic(net) -> Dict[str, str]:
    """pnic key -> name of the standard or distributed switch it uplinks."""
    owners: Dict[str, str] = {}
    for vs in getattr(net, "vswitch", []) or []:
        for key in getattr(vs, "pnic", []) or []:
            owners[key] = getattr(vs, "name", None)
    for ps in getattr(net, "proxySwitch", []) or []:
        for key in getattr(ps, "pnic", []) or []:
            owners.setdefault(key, getattr(ps, "dvsName", None))
    return owners


def _cdp(hint) -> Optional[Dict[str, str]]:
    csp = getattr(hint, "connectedSwitchPort", None)
    if csp is None or not getattr(csp, "devId", None):
        return None
    return {"switch": csp.devId, "port": getattr(csp, "portId", None)}


def _lldp(hint) -> Optional[Dict[str, str]]:
    info = getattr(hint, "lldpInfo", None)
    if info is None:
        return None
    params = {getattr(p, "key", None): getattr(p, "value", None) for p in getattr(info, "parameter", []) or []}
    switch = params.get("System Name") or getattr(info, "chassisId", None)
    if not switch:
        return None
    return {"switch": switch, "port": getattr(info, "portId", None)}


def _attr(obj, *path):
    for name in path:
        obj = getattr(obj, name, None)
    return obj


def _vlan_text(vlan) -> Optional[str]:
    vlan_id = getattr(vlan, "vlanId", vlan)
    if isinstance(vlan_id, int):
        return str(vlan_id)
    if isinstance(vlan_id, (list, tuple)):
        ranges = [f"{r.start}-{r.end}" if r.start != r.end else str(r.start) for r in vlan_id]
        return ",".join(ranges) or None
    return None


class PhysicalNetworkCollector:
    kind = ReportKind.NETWORK_PHYSICAL

    def __init__(self, probe):
        self.probe = probe

    def _neighbor(self, host: ManagedHost, device: str):
        hint = capture(host, f"{device} network hint", self.probe.network_hint, host, device)
        if hint is None:
            return None, None
        return first_match(host, [("CDP", lambda: _cdp(hint)), ("LLDP", lambda: _lldp(hint))])

    def collect(self, host: ManagedHost) -> PhysicalNetworkRecord:
        net = capture(host, "network config", self.probe.network_config, host)
        pnics = list(getattr(net, "pnic", []) or []) if net is not None else None
        owners = _switch_by_pnic(net)

        switches: List[str] = []
        ports: List[str] = []
        protocols: List[str] = []
        for pnic in pnics or []:
            device = getattr(pnic, "device", None)
            if not device:
                continue
            protocol, found = self._neighbor(host, device)
            if found:
                switches.append(f"{device}:{found['switch']}")
                ports.append(f"{device}:{found['port'] or ''}")
                protocols.append(protocol)

        return PhysicalNetworkRecord(
            **identity(host),
            nic_count=len(pnics) if pnics is not None else None,
            adapters=join(_attr(p, "device") for p in pnics or []),
            mac_addresses=join(_attr(p, "mac") for p in pnics or []),
            link_speeds=join(
                f"{_attr(p, 'device')}:{_attr(p, 'linkSpeed', 'speedMb') or 'down'}" for p in pnics or []
            ),
            drivers=join(unique(_attr(p, "driver") for p in pnics or [])),
            virtual_switches=join(unique(owners.get(_attr(p, "key")) for p in pnics or [])),
            connected_switch=join(switches),
            connected_port=join(ports),
            discovery_protocol=join(unique(protocols)),
        )


class VmkernelCollector:
    kind = ReportKind.NETWORK_VMKERNEL

    def __init__(self, probe):
        self.probe = probe

    def collect(self, host: ManagedHost) -> VmkernelRecord:
        p = self.probe
        net = capture(host, "network config", p.network_config, host)
        services = capture(host, "vmkernel services", p.vmkernel_services, host, default={})
        dv_groups = capture(host, "distributed port groups", p.distributed_portgroups, host, default=[])
        vnics = list(getattr(net, "vnic", []) or []) if net is not None else None

        std_switch = {
            _attr(pg, "spec", "name"): _attr(pg, "spec", "vswitchName") for pg in getattr(net, "portgroup", []) or []
        }
        dv_names = {_attr(pg, "key"): _attr(pg, "name") for pg in dv_groups or []}
        dvs_names = {_attr(ps, "dvsUuid"): _attr(ps, "dvsName") for ps in getattr(net, "proxySwitch", []) or []}
        services = services or {}

        port_groups: List[str] = []
        owners: List[str] = []
        for vnic in vnics or []:
            dvport = _attr(vnic, "spec", "distributedVirtualPort")
            if dvport is not None:
                group_key = _attr(dvport, "portgroupKey")
                switch_uuid = _attr(dvport, "switchUuid")
                port_groups.append(dv_names.get(group_key, group_key))
                owners.append(dvs_names.get(switch_uuid, switch_uuid))
            else:
                portgroup = _attr(vnic, "portgroup")
                port_groups.append(portgroup)
                owners.append(std_switch.get(portgroup))

        return VmkernelRecord(
            **identity(host),
            vmkernel_count=len(vnics) if vnics is not None else None,
            adapters=join(_attr(v, "device") for v in vnics or []),
            ip_addresses=join(_attr(v, "spec", "ip", "ipAddress") for v in vnics or []),
            subnet_masks=join(_attr(v, "spec", "ip", "subnetMask") for v in vnics or []),
            mac_addresses=join(_attr(v, "spec", "mac") for v in vnics or []),
            mtu=join(_attr(v, "spec", "mtu") for v in vnics or []),
            port_groups=join(port_groups),
            virtual_switches=join(unique(owners)),
            enabled_services=join(
                f"{v.device}:{','.join(services[v.device])}"
                for v in vnics or []
                if services.get(_attr(v, "device"))
            ),
        )


class VSwitchCollector:
    kind = ReportKind.NETWORK_VSWITCH

    def __init__(self, probe):
        self.probe = probe

    def _standard(self, net) -> Optional[Dict[str, Any]]:
        switches = list(getattr(net, "vswitch", []) or [])
        if not switches:
            return None
        pnics = _pnic_names(net)
        names = {_attr(s, "name") for s in switches} - {None}
        groups = [
            pg.spec for pg in getattr(net, "portgroup", []) or [] if _attr(pg, "spec", "vswitchName") in names
        ]
        return {
            "switch_names": join(_attr(s, "name") for s in switches),
            "mtu": join(_attr(s, "mtu") for s in switches),
            "uplinks": join(pnics.get(k, k) for s in switches for k in _attr(s, "pnic") or []),
            "port_groups": join(_attr(g, "name") for g in groups),
            "vlan_ids": join(_vlan_text(_attr(g, "vlanId")) for g in groups),
        }

    def _distributed(self, host: ManagedHost, net) -> Optional[Dict[str, Any]]:
        switches = list(getattr(net, "proxySwitch", []) or [])
        if not switches:
            return None
        groups = capture(host, "distributed port groups", self.probe.distributed_portgroups, host, default=[])
        uplinks = []
        for ps in switches:
            backing = getattr(getattr(ps, "spec", None), "backing", None)
            uplinks.extend(getattr(s, "pnicDevice", None) for s in getattr(backing, "pnicSpec", []) or [])
        return {
            "switch_names": join(ps.dvsName for ps in switches),
            "mtu": join(ps.mtu for ps in switches),
            "uplinks": join(uplinks),
            "port_groups": join(pg.name for pg in groups),
            "vlan_ids": join(
                _vlan_text(getattr(getattr(pg.config, "defaultPortConfig", None), "vlan", None)) for pg in groups
            ),
        }

    def collect(self, host: ManagedHost) -> VSwitchRecord:
        net = capture(host, "network config", self.probe.network_config, host)
        switch_type, found = first_match(
            host,
            [
                ("Standard", lambda: self._standard(net)),
                ("Distributed", lambda: self._distributed(host, net)),
            ],
        )
        return VSwitchRecord(**identity(host), switch_type=switch_type, **(found or {}))
