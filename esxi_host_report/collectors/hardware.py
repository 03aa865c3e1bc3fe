from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..models import HardwareRecord, ManagedHost, ReportKind
from .base import capture, format_timestamp, identity, join, unique

logger = logging.getLogger("esxi_report.collectors.hardware")

SERIAL_KEYS = ("SerialNumberTag", "ServiceTag", "EnclosureSerialNumberTag")
ASSET_KEYS = ("AssetTag",)


def _identifier(system_info, keys) -> Optional[str]:
    for ident in getattr(system_info, "otherIdentifyingInfo", []) or []:
        key = getattr(getattr(ident, "identifierType", None), "key", None)
        value = (getattr(ident, "identifierValue", "") or "").strip()
        if key in keys and value:
            return value
    return None


def _memory_gb(size: Optional[int]) -> Optional[int]:
    if not size:
        return None
    return int(round(size / (1024 ** 3)))


class HardwareCollector:
    kind = ReportKind.HARDWARE

    def __init__(self, probe):
        self.probe = probe

    def _pci_attr(self, pci: Dict[str, Any], device_id: Optional[str], attr: str) -> Optional[str]:
        return getattr(pci.get(device_id), attr, None) if device_id else None

    def collect(self, host: ManagedHost) -> HardwareRecord:
        p = self.probe
        summary = capture(host, "hardware summary", p.hardware_summary, host)
        system = capture(host, "system info", p.system_info, host)
        bios = capture(host, "BIOS info", p.bios_info, host)
        pci = capture(host, "PCI devices", p.pci_devices, host, default={})
        nics = capture(host, "physical NICs", p.physical_nics, host)
        hbas = capture(host, "storage adapters", p.host_bus_adapters, host)

        nic_firmware: List[Optional[str]] = []
        for pnic in nics or []:
            nic_firmware.append(capture(host, f"{pnic.device} firmware", p.nic_firmware, host, pnic))

        serial = getattr(system, "serialNumber", None) or _identifier(system, SERIAL_KEYS)

        return HardwareRecord(
            **identity(host),
            manufacturer=getattr(system, "vendor", None),
            model=getattr(system, "model", None),
            serial_number=serial,
            asset_tag=_identifier(system, ASSET_KEYS),
            bios_version=getattr(bios, "biosVersion", None),
            bios_release_date=format_timestamp(getattr(bios, "releaseDate", None)),
            cpu_model=getattr(summary, "cpuModel", None),
            cpu_count=getattr(summary, "numCpuPkgs", None),
            cpu_core_total=getattr(summary, "numCpuCores", None),
            cpu_speed_mhz=getattr(summary, "cpuMhz", None),
            memory_gb=_memory_gb(getattr(summary, "memorySize", None)),
            nic_count=len(nics) if nics is not None else None,
            nic_make=join(unique(self._pci_attr(pci, getattr(n, "pci", None), "vendorName") for n in nics or [])),
            nic_model=join(unique(self._pci_attr(pci, getattr(n, "pci", None), "deviceName") for n in nics or [])),
            nic_driver=join(unique(getattr(n, "driver", None) for n in nics or [])),
            nic_firmware=join(unique(nic_firmware)),
            hba_count=len(hbas) if hbas is not None else None,
            hba_make=join(unique(self._pci_attr(pci, getattr(h, "pci", None), "vendorName") for h in hbas or [])),
            hba_model=join(unique(getattr(h, "model", None) for h in hbas or [])),
            hba_driver=join(unique(getattr(h, "driver", None) for h in hbas or [])),
            hba_firmware=None,
            rac_ip=capture(host, "RAC IP", p.rac_ip, host),
            rac_firmware=capture(host, "RAC firmware", p.rac_firmware, host),
        )
