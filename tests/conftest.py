from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from esxi_host_report.config import Config
from esxi_host_report.models import HostSelector, ManagedHost, ReportKind


def make_host(name: str, state: str = "Connected", cluster: str = "prod", datacenter: str = "dc1") -> ManagedHost:
    return ManagedHost(name=name, state=state, cluster=cluster, datacenter=datacenter, server="vc1", handle=None)


class FakeInventory:
    def __init__(self, clusters=None, datacenters=None, hosts: Optional[List[ManagedHost]] = None, errors=None):
        self.clusters: Dict[str, List[ManagedHost]] = clusters or {}
        self.datacenters: Dict[str, List[ManagedHost]] = datacenters or {}
        self.hosts: List[ManagedHost] = hosts or []
        self.errors = errors or {}
        self.lookups: List[str] = []

    def _all(self) -> List[ManagedHost]:
        seen = {h.name: h for h in self.hosts}
        for group in list(self.clusters.values()) + list(self.datacenters.values()):
            for h in group:
                seen.setdefault(h.name, h)
        return list(seen.values())

    def list_hosts_by_cluster(self, name):
        if name in self.errors:
            raise self.errors[name]
        return sorted(self.clusters.get(name, []), key=lambda h: h.name.lower())

    def list_hosts_by_datacenter(self, name):
        if name in self.errors:
            raise self.errors[name]
        return sorted(self.datacenters.get(name, []), key=lambda h: h.name.lower())

    def list_all_hosts(self):
        return sorted(self._all(), key=lambda h: h.name.lower())

    def get_host(self, name):
        self.lookups.append(name)
        if name in self.errors:
            raise self.errors[name]
        for h in self._all():
            if h.name.lower() == name.lower():
                return h
        return None


class FakeSession:
    def __init__(self, endpoints=("vc1",)):
        self.endpoints = list(endpoints)
        self.closed = False

    def require(self):
        if not self.endpoints:
            from esxi_host_report.errors import NoSessionError

            raise NoSessionError("Not connected to any vCenter or ESXi endpoint")
        return self

    def close(self):
        self.closed = True


PNIC_KEY = "key-vim.host.PhysicalNic-{}"


def _pnic(device, mac, speed, pci, firmware):
    return SimpleNamespace(
        key=PNIC_KEY.format(device),
        device=device,
        mac=mac,
        driver="ixgben",
        pci=pci,
        linkSpeed=SimpleNamespace(speedMb=speed) if speed else None,
        firmwareVersion=firmware,
    )


def standard_network():
    p0 = _pnic("vmnic0", "00:50:56:aa:00:01", 10000, "0000:3b:00.0", "1.1.9")
    p1 = _pnic("vmnic1", "00:50:56:aa:00:02", None, "0000:3b:00.1", "1.1.9")
    vmk0 = SimpleNamespace(
        key="key-vim.host.VirtualNic-vmk0",
        device="vmk0",
        portgroup="Management Network",
        spec=SimpleNamespace(
            ip=SimpleNamespace(ipAddress="10.0.0.11", subnetMask="255.255.255.0"),
            mac="00:50:56:aa:00:01",
            mtu=1500,
            distributedVirtualPort=None,
        ),
    )
    return SimpleNamespace(
        pnic=[p0, p1],
        vnic=[vmk0],
        vswitch=[SimpleNamespace(name="vSwitch0", mtu=1500, pnic=[p0.key, p1.key])],
        proxySwitch=[],
        portgroup=[
            SimpleNamespace(spec=SimpleNamespace(name="Management Network", vswitchName="vSwitch0", vlanId=10)),
            SimpleNamespace(spec=SimpleNamespace(name="VM Network", vswitchName="vSwitch0", vlanId=0)),
        ],
        dnsConfig=SimpleNamespace(address=["10.0.0.2", "10.0.0.3"], searchDomain=["lab.local"]),
    )


class FakeProbe:
    """Canned answers for every sub-query; names in `failing` raise instead."""

    def __init__(self, failing=(), network=None, hints=None, packages=None):
        self.failing = set(failing)
        self.network = network or standard_network()
        self.hints = hints if hints is not None else {
            "vmnic0": SimpleNamespace(
                connectedSwitchPort=SimpleNamespace(devId="core-sw1", portId="Eth1/1"), lldpInfo=None
            ),
            "vmnic1": SimpleNamespace(
                connectedSwitchPort=None,
                lldpInfo=SimpleNamespace(
                    chassisId="aa:bb", portId="Eth1/2", parameter=[SimpleNamespace(key="System Name", value="core-sw2")]
                ),
            ),
        }
        self.packages = packages if packages is not None else [
            SimpleNamespace(name="esx-base", version="7.0.3-0.105.22348816",
                            installDate=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)),
            SimpleNamespace(name="i40en", version="1.14.1.0-1OEM.700.1.0.15843807",
                            installDate=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)),
        ]

    def _check(self, name):
        if name in self.failing:
            raise RuntimeError(f"{name} failed")

    def hardware_summary(self, host):
        self._check("hardware_summary")
        return SimpleNamespace(
            cpuModel="Intel(R) Xeon(R) Gold 6230", numCpuPkgs=2, numCpuCores=40, cpuMhz=2100,
            memorySize=512 * 1024 ** 3,
        )

    def system_info(self, host):
        self._check("system_info")
        return SimpleNamespace(
            vendor="Dell Inc.",
            model="PowerEdge R640",
            serialNumber=None,
            otherIdentifyingInfo=[
                SimpleNamespace(identifierType=SimpleNamespace(key="ServiceTag"), identifierValue="ABC1234"),
                SimpleNamespace(identifierType=SimpleNamespace(key="AssetTag"), identifierValue="ASSET-9"),
            ],
        )

    def bios_info(self, host):
        self._check("bios_info")
        return SimpleNamespace(biosVersion="2.17.1", releaseDate=datetime(2023, 1, 5, tzinfo=timezone.utc))

    def pci_devices(self, host):
        self._check("pci_devices")
        return {
            "0000:3b:00.0": SimpleNamespace(vendorName="Intel Corporation", deviceName="Ethernet Controller X710"),
            "0000:3b:00.1": SimpleNamespace(vendorName="Intel Corporation", deviceName="Ethernet Controller X710"),
            "0000:18:00.0": SimpleNamespace(vendorName="Broadcom", deviceName="PERC H730P"),
        }

    def physical_nics(self, host):
        self._check("physical_nics")
        return list(self.network.pnic)

    def nic_firmware(self, host, pnic):
        self._check("nic_firmware")
        return pnic.firmwareVersion

    def host_bus_adapters(self, host):
        self._check("host_bus_adapters")
        return [SimpleNamespace(device="vmhba0", model="PERC H730P Mini", driver="lsi_mr3", pci="0000:18:00.0")]

    def rac_ip(self, host):
        self._check("rac_ip")
        return "10.0.1.11"

    def rac_firmware(self, host):
        self._check("rac_firmware")
        return "4.40.00.00"

    def product(self, host):
        self._check("product")
        return SimpleNamespace(name="VMware ESXi", version="7.0.3", build="22348816")

    def boot_time(self, host):
        self._check("boot_time")
        return datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)

    def boot_device(self, host):
        self._check("boot_device")
        return {
            "BootFilesystemUUID": "5f3a1b2c-11aa22bb-3c4d-001122334455",
            "StatelessBootNIC": None,
            "BootNIC": None,
            "Device": "/vmfs/volumes/5f3a1b2c-11aa22bb-3c4d-001122334455",
        }

    def image_profile(self, host):
        self._check("image_profile")
        return "ESXi-7.0U3o-22348816-standard"

    def software_packages(self, host):
        self._check("software_packages")
        return list(self.packages)

    def ntp_servers(self, host):
        self._check("ntp_servers")
        return ["pool.ntp.org"]

    def service_running(self, host, key):
        self._check("service_running")
        return key == "ntpd"

    def dns_config(self, host):
        self._check("dns_config")
        return self.network.dnsConfig

    def advanced_option(self, host, key):
        self._check("advanced_option")
        return {
            "Syslog.global.logHost": "udp://syslog.lab.local:514",
            "ScratchConfig.CurrentScratchLocation": "/vmfs/volumes/datastore1/.locker",
        }.get(key)

    def lockdown_mode(self, host):
        self._check("lockdown_mode")
        return "lockdownDisabled"

    def power_policy(self, host):
        self._check("power_policy")
        return "static"

    def hyperthreading(self, host):
        self._check("hyperthreading")
        return True

    def network_config(self, host):
        self._check("network_config")
        return self.network

    def network_hint(self, host, device):
        self._check("network_hint")
        return self.hints.get(device)

    def vmkernel_services(self, host):
        self._check("vmkernel_services")
        return {"vmk0": ["management", "vmotion"]}

    def distributed_portgroups(self, host):
        self._check("distributed_portgroups")
        return []


FIXED_NOW = datetime(2024, 6, 3, 10, 30, tzinfo=timezone.utc)


def make_config(**overrides) -> Config:
    values = dict(
        servers=["vc1"],
        username="administrator@vsphere.local",
        password="secret",
        port=443,
        verify_ssl=False,
        selector=HostSelector.from_options(),
        reports=[ReportKind.HARDWARE],
        output="return",
        folder=None,
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def host():
    return make_host("esx01.lab.local")
