from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple


class SelectorKind(str, Enum):
    HOSTS = "hosts"
    CLUSTERS = "clusters"
    DATACENTERS = "datacenters"
    ALL = "all"


def _named(names: Optional[Sequence[str]]) -> bool:
    return any((n or "").strip() for n in names or ())


@dataclass(frozen=True)
class HostSelector:
    """Which hosts a run targets. Exactly one variant is active."""

    kind: SelectorKind
    names: Tuple[str, ...] = ()

    @classmethod
    def from_options(
        cls,
        hosts: Optional[Sequence[str]] = None,
        clusters: Optional[Sequence[str]] = None,
        datacenters: Optional[Sequence[str]] = None,
        all_hosts: bool = False,
    ) -> "HostSelector":
        # explicit hosts > cluster > datacenter > all; nothing at all means all.
        # A list holding only blanks does not count.
        if _named(hosts):
            return cls(SelectorKind.HOSTS, tuple(hosts))
        if _named(clusters):
            return cls(SelectorKind.CLUSTERS, tuple(clusters))
        if _named(datacenters):
            return cls(SelectorKind.DATACENTERS, tuple(datacenters))
        return cls(SelectorKind.ALL)


@dataclass(frozen=True)
class HostRef:
    name: str
    group: str = ""


@dataclass
class ManagedHost:
    """A fresh view of one host as returned by the directory service."""

    name: str
    state: str = ""
    cluster: Optional[str] = None
    datacenter: Optional[str] = None
    server: Optional[str] = None
    handle: Any = None


@dataclass(frozen=True)
class SkipRecord:
    hostname: str
    connection_state: str = ""


class ReportKind(str, Enum):
    HARDWARE = "hardware"
    CONFIGURATION = "configuration"
    NETWORK_PHYSICAL = "network_physical"
    NETWORK_VMKERNEL = "network_vmkernel"
    NETWORK_VSWITCH = "network_vswitch"
    PATCHING = "patching"

    @property
    def title(self) -> str:
        return SHEET_TITLES[self]


SHEET_TITLES = {
    ReportKind.HARDWARE: "Hardware",
    ReportKind.CONFIGURATION: "Configuration",
    ReportKind.NETWORK_PHYSICAL: "Physical NICs",
    ReportKind.NETWORK_VMKERNEL: "VMkernel",
    ReportKind.NETWORK_VSWITCH: "vSwitch",
    ReportKind.PATCHING: "Patching",
}


def _column(name: str):
    return field(default=None, metadata={"column": name})


class FactRecord:
    """Mixin for the per-kind record dataclasses."""

    kind: ReportKind

    @classmethod
    def columns(cls) -> List[str]:
        return [f.metadata["column"] for f in fields(cls)]

    def as_row(self) -> Dict[str, Any]:
        return {f.metadata["column"]: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class HardwareRecord(FactRecord):
    kind = ReportKind.HARDWARE

    hostname: str = field(metadata={"column": "Hostname"})
    datacenter: Optional[str] = _column("Datacenter")
    cluster: Optional[str] = _column("Cluster")
    vcenter: Optional[str] = _column("vCenter")
    manufacturer: Optional[str] = _column("Manufacturer")
    model: Optional[str] = _column("Model")
    serial_number: Optional[str] = _column("Serial Number")
    asset_tag: Optional[str] = _column("Asset Tag")
    bios_version: Optional[str] = _column("BIOS Version")
    bios_release_date: Optional[str] = _column("BIOS Release Date")
    cpu_model: Optional[str] = _column("CPU Model")
    cpu_count: Optional[int] = _column("CPU Count")
    cpu_core_total: Optional[int] = _column("CPU Core Total")
    cpu_speed_mhz: Optional[int] = _column("Speed (MHz)")
    memory_gb: Optional[int] = _column("Memory (GB)")
    nic_count: Optional[int] = _column("NIC Count")
    nic_make: Optional[str] = _column("NIC Make")
    nic_model: Optional[str] = _column("NIC Model")
    nic_driver: Optional[str] = _column("NIC Driver")
    nic_firmware: Optional[str] = _column("Firmware Version")
    hba_count: Optional[int] = _column("HBA Count")
    hba_make: Optional[str] = _column("HBA Make")
    hba_model: Optional[str] = _column("HBA Model")
    hba_driver: Optional[str] = _column("HBA Driver")
    # vSphere exposes no HBA firmware; the column stays empty
    hba_firmware: Optional[str] = _column("HBA Firmware")
    rac_ip: Optional[str] = _column("RAC IP")
    rac_firmware: Optional[str] = _column("RAC Firmware")


@dataclass(frozen=True)
class ConfigurationRecord(FactRecord):
    kind = ReportKind.CONFIGURATION

    hostname: str = field(metadata={"column": "Hostname"})
    datacenter: Optional[str] = _column("Datacenter")
    cluster: Optional[str] = _column("Cluster")
    vcenter: Optional[str] = _column("vCenter")
    connection_state: Optional[str] = _column("Connection State")
    product: Optional[str] = _column("Product")
    version: Optional[str] = _column("Version")
    build: Optional[str] = _column("Build")
    image_profile: Optional[str] = _column("Image Profile")
    install_type: Optional[str] = _column("Install Type")
    boot_device: Optional[str] = _column("Boot Device")
    last_boot: Optional[str] = _column("Last Boot")
    uptime: Optional[str] = _column("Uptime")
    last_patched: Optional[str] = _column("Last Patched")
    ntp_servers: Optional[str] = _column("NTP Servers")
    ntp_running: Optional[bool] = _column("NTP Running")
    dns_servers: Optional[str] = _column("DNS Servers")
    search_domains: Optional[str] = _column("Search Domains")
    syslog_server: Optional[str] = _column("Syslog Server")
    scratch_location: Optional[str] = _column("Scratch Location")
    lockdown_mode: Optional[str] = _column("Lockdown Mode")
    power_policy: Optional[str] = _column("Power Policy")
    hyperthreading: Optional[bool] = _column("Hyperthreading")


@dataclass(frozen=True)
class PhysicalNetworkRecord(FactRecord):
    kind = ReportKind.NETWORK_PHYSICAL

    hostname: str = field(metadata={"column": "Hostname"})
    datacenter: Optional[str] = _column("Datacenter")
    cluster: Optional[str] = _column("Cluster")
    vcenter: Optional[str] = _column("vCenter")
    nic_count: Optional[int] = _column("NIC Count")
    adapters: Optional[str] = _column("Adapters")
    mac_addresses: Optional[str] = _column("MAC Addresses")
    link_speeds: Optional[str] = _column("Link Speed (Mb)")
    drivers: Optional[str] = _column("Drivers")
    virtual_switches: Optional[str] = _column("Virtual Switches")
    connected_switch: Optional[str] = _column("Connected Switch")
    connected_port: Optional[str] = _column("Connected Port")
    discovery_protocol: Optional[str] = _column("Discovery Protocol")


@dataclass(frozen=True)
class VmkernelRecord(FactRecord):
    kind = ReportKind.NETWORK_VMKERNEL

    hostname: str = field(metadata={"column": "Hostname"})
    datacenter: Optional[str] = _column("Datacenter")
    cluster: Optional[str] = _column("Cluster")
    vcenter: Optional[str] = _column("vCenter")
    vmkernel_count: Optional[int] = _column("VMkernel Count")
    adapters: Optional[str] = _column("Adapters")
    ip_addresses: Optional[str] = _column("IP Addresses")
    subnet_masks: Optional[str] = _column("Subnet Masks")
    mac_addresses: Optional[str] = _column("MAC Addresses")
    mtu: Optional[str] = _column("MTU")
    port_groups: Optional[str] = _column("Port Groups")
    virtual_switches: Optional[str] = _column("Virtual Switches")
    enabled_services: Optional[str] = _column("Enabled Services")


@dataclass(frozen=True)
class VSwitchRecord(FactRecord):
    kind = ReportKind.NETWORK_VSWITCH

    hostname: str = field(metadata={"column": "Hostname"})
    datacenter: Optional[str] = _column("Datacenter")
    cluster: Optional[str] = _column("Cluster")
    vcenter: Optional[str] = _column("vCenter")
    switch_type: Optional[str] = _column("Switch Type")
    switch_names: Optional[str] = _column("Switch Names")
    mtu: Optional[str] = _column("MTU")
    uplinks: Optional[str] = _column("Uplinks")
    port_groups: Optional[str] = _column("Port Groups")
    vlan_ids: Optional[str] = _column("VLAN IDs")


@dataclass(frozen=True)
class PatchRecord(FactRecord):
    kind = ReportKind.PATCHING

    hostname: str = field(metadata={"column": "Hostname"})
    datacenter: Optional[str] = _column("Datacenter")
    cluster: Optional[str] = _column("Cluster")
    vcenter: Optional[str] = _column("vCenter")
    version: Optional[str] = _column("Version")
    build: Optional[str] = _column("Build")
    image_profile: Optional[str] = _column("Image Profile")
    baselines: Optional[str] = _column("Baselines")
    compliance_status: Optional[str] = _column("Compliance Status")
    compliant_count: Optional[int] = _column("Compliant Patch Count")
    non_compliant_count: Optional[int] = _column("Non-Compliant Patch Count")
    non_compliant_patches: Optional[str] = _column("Non-Compliant Patches")
    last_patched: Optional[str] = _column("Last Patched")


RECORD_TYPES = {
    ReportKind.HARDWARE: HardwareRecord,
    ReportKind.CONFIGURATION: ConfigurationRecord,
    ReportKind.NETWORK_PHYSICAL: PhysicalNetworkRecord,
    ReportKind.NETWORK_VMKERNEL: VmkernelRecord,
    ReportKind.NETWORK_VSWITCH: VSwitchRecord,
    ReportKind.PATCHING: PatchRecord,
}


@dataclass
class ReportCollection:
    kind: ReportKind
    records: List[FactRecord] = field(default_factory=list)

    @property
    def columns(self) -> List[str]:
        return RECORD_TYPES[self.kind].columns()

    def rows(self) -> List[Dict[str, Any]]:
        return [r.as_row() for r in self.records]

    def __len__(self) -> int:
        return len(self.records)
