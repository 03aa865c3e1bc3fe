from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from ..models import ConfigurationRecord, ManagedHost, ReportKind
from .base import capture, format_timestamp, format_uptime, identity, install_type, join, last_patched

SYSLOG_OPTION = "Syslog.global.logHost"
SCRATCH_OPTION = "ScratchConfig.CurrentScratchLocation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigurationCollector:
    kind = ReportKind.CONFIGURATION

    def __init__(self, probe, clock: Optional[Callable[[], datetime]] = None):
        self.probe = probe
        self.clock = clock or _utcnow

    def collect(self, host: ManagedHost) -> ConfigurationRecord:
        p = self.probe
        product = capture(host, "product", p.product, host)
        boot = capture(host, "boot device", p.boot_device, host)
        boot_time = capture(host, "boot time", p.boot_time, host)
        packages = capture(host, "software packages", p.software_packages, host)
        dns = capture(host, "DNS config", p.dns_config, host)
        build = getattr(product, "build", None)

        return ConfigurationRecord(
            **identity(host),
            connection_state=host.state or None,
            product=getattr(product, "name", None),
            version=getattr(product, "version", None),
            build=build,
            image_profile=capture(host, "image profile", p.image_profile, host),
            install_type=install_type(boot),
            boot_device=(boot or {}).get("Device"),
            last_boot=format_timestamp(boot_time),
            uptime=format_uptime(boot_time, self.clock()),
            last_patched=format_timestamp(last_patched(packages, build)),
            ntp_servers=join(capture(host, "NTP servers", p.ntp_servers, host)),
            ntp_running=capture(host, "NTP service", p.service_running, host, "ntpd"),
            dns_servers=join(getattr(dns, "address", None)),
            search_domains=join(getattr(dns, "searchDomain", None)),
            syslog_server=capture(host, "syslog server", p.advanced_option, host, SYSLOG_OPTION),
            scratch_location=capture(host, "scratch location", p.advanced_option, host, SCRATCH_OPTION),
            lockdown_mode=capture(host, "lockdown mode", p.lockdown_mode, host),
            power_policy=capture(host, "power policy", p.power_policy, host),
            hyperthreading=capture(host, "hyperthreading", p.hyperthreading, host),
        )
