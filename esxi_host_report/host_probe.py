from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pyVmomi import vim

from .models import ManagedHost
from .wsman_client import RAC_FIRMWARE_URI, RAC_IP_URI, WSManClient

logger = logging.getLogger("esxi_report.probe")

BOOTBANK_NAMES = ("BOOTBANK1", "BOOTBANK")
PERSISTENT_VOLUME_TYPES = ("VMFS", "VMFSOS", "VFFS")


def _config(host: ManagedHost):
    return getattr(host.handle, "config", None)


def _network(host: ManagedHost):
    return getattr(_config(host), "network", None)


class HostProbe:
    """
    Sub-queries against one host, each returning raw API data.

    Every method is independent and may raise; the collectors decide what a
    failure means for the field it feeds.
    """

    def __init__(self, wsman_port: int = 443, wsman_timeout: int = 30, verify_ssl: bool = False):
        self.wsman_port = wsman_port
        self.wsman_timeout = wsman_timeout
        self.verify_ssl = verify_ssl

    # hardware
    def hardware_summary(self, host: ManagedHost):
        return host.handle.summary.hardware

    def system_info(self, host: ManagedHost):
        return host.handle.hardware.systemInfo

    def bios_info(self, host: ManagedHost):
        return host.handle.hardware.biosInfo

    def physical_nics(self, host: ManagedHost) -> List[Any]:
        return list(_network(host).pnic or [])

    def pci_devices(self, host: ManagedHost) -> Dict[str, Any]:
        return {p.id: p for p in host.handle.hardware.pciDevice or []}

    def nic_firmware(self, host: ManagedHost, pnic) -> Optional[str]:
        # only populated by newer vSphere API releases
        return getattr(pnic, "firmwareVersion", None) or None

    def host_bus_adapters(self, host: ManagedHost) -> List[Any]:
        return list(_config(host).storageDevice.hostBusAdapter or [])

    def _wsman(self, host: ManagedHost) -> WSManClient:
        ticket = host.handle.AcquireCimServicesTicket()
        return WSManClient(
            host=host.name,
            username=ticket.sessionId,
            password=ticket.sessionId,
            port=self.wsman_port,
            timeout=self.wsman_timeout,
            verify_ssl=self.verify_ssl,
        )

    def rac_ip(self, host: ManagedHost) -> Optional[str]:
        return self._wsman(host).first_value(RAC_IP_URI, "IPv4Address")

    def rac_firmware(self, host: ManagedHost) -> Optional[str]:
        return self._wsman(host).first_value(RAC_FIRMWARE_URI, "VersionString")

    # software / configuration
    def product(self, host: ManagedHost):
        return _config(host).product

    def boot_time(self, host: ManagedHost):
        return host.handle.runtime.bootTime

    def boot_device(self, host: ManagedHost) -> Dict[str, Optional[str]]:
        """
        Boot metadata shaped like `esxcli system boot device get`.

        A bootbank volume gives the boot filesystem UUID. Without one the host
        network-booted: the NIC sharing vmk0's MAC is the boot NIC, and it is a
        stateless boot when no persistent local volume is mounted either.
        """
        mounts = list(_config(host).fileSystemVolume.mountInfo or [])
        result: Dict[str, Optional[str]] = {
            "BootFilesystemUUID": None,
            "StatelessBootNIC": None,
            "BootNIC": None,
            "Device": None,
        }
        for mount in mounts:
            volume = getattr(mount, "volume", None)
            if (getattr(volume, "name", "") or "").upper() in BOOTBANK_NAMES:
                result["BootFilesystemUUID"] = getattr(volume, "uuid", None)
                result["Device"] = getattr(getattr(mount, "mountInfo", None), "path", None)
                return result

        net = _network(host)
        vmk0 = next((v for v in getattr(net, "vnic", []) or [] if v.device == "vmk0"), None)
        mac = getattr(getattr(vmk0, "spec", None), "mac", None) or getattr(vmk0, "mac", None)
        boot_nic = next((p.device for p in getattr(net, "pnic", []) or [] if mac and p.mac == mac), None)
        persistent = any(
            (getattr(getattr(m, "volume", None), "type", "") or "").upper() in PERSISTENT_VOLUME_TYPES
            for m in mounts
        )
        if boot_nic and not persistent:
            result["StatelessBootNIC"] = boot_nic
        else:
            result["BootNIC"] = boot_nic
        result["Device"] = boot_nic
        return result

    def _image_manager(self, host: ManagedHost):
        return host.handle.configManager.imageConfigManager

    def image_profile(self, host: ManagedHost) -> Optional[str]:
        profile = self._image_manager(host).HostImageConfigGetProfile()
        return getattr(profile, "name", None)

    def software_packages(self, host: ManagedHost) -> List[Any]:
        return list(self._image_manager(host).FetchSoftwarePackages() or [])

    def ntp_servers(self, host: ManagedHost) -> List[str]:
        info = host.handle.configManager.dateTimeSystem.dateTimeInfo
        return list(getattr(info.ntpConfig, "server", []) or [])

    def service_running(self, host: ManagedHost, key: str) -> Optional[bool]:
        services = host.handle.configManager.serviceSystem.serviceInfo.service
        for svc in services or []:
            if svc.key == key:
                return bool(svc.running)
        return None

    def dns_config(self, host: ManagedHost):
        return _network(host).dnsConfig

    def advanced_option(self, host: ManagedHost, key: str) -> Optional[str]:
        options = host.handle.configManager.advancedOption.QueryOptions(key)
        for opt in options or []:
            return None if opt.value in (None, "") else str(opt.value)
        return None

    def lockdown_mode(self, host: ManagedHost) -> Optional[str]:
        mode = getattr(_config(host), "lockdownMode", None)
        return str(mode) if mode is not None else None

    def power_policy(self, host: ManagedHost) -> Optional[str]:
        policy = _config(host).powerSystemInfo.currentPolicy
        return getattr(policy, "shortName", None)

    def hyperthreading(self, host: ManagedHost) -> Optional[bool]:
        return _config(host).hyperThread.active

    # networking
    def network_config(self, host: ManagedHost):
        return _network(host)

    def network_hint(self, host: ManagedHost, device: str):
        hints = host.handle.configManager.networkSystem.QueryNetworkHint(device=[device])
        return hints[0] if hints else None

    def vmkernel_services(self, host: ManagedHost) -> Dict[str, List[str]]:
        """Map each vmk device to the traffic types selected on it."""
        info = host.handle.configManager.virtualNicManager.info
        services: Dict[str, List[str]] = {}
        for cfg in getattr(info, "netConfig", []) or []:
            by_key = {v.key: v.device for v in getattr(cfg, "candidateVnic", []) or []}
            for key in getattr(cfg, "selectedVnic", []) or []:
                device = by_key.get(key) or key.rsplit("-", 1)[-1]
                services.setdefault(device, []).append(cfg.nicType)
        return services

    def distributed_portgroups(self, host: ManagedHost) -> List[Any]:
        return [n for n in host.handle.network or [] if isinstance(n, vim.dvs.DistributedVirtualPortgroup)]
