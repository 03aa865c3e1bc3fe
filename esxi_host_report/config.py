import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .models import HostSelector, ReportKind

DEFAULT_ENV_PATH = Path(".env")
DEFAULT_BASELINES_PATH = Path("baselines.json")

DEFAULT_REPORTS = [ReportKind.HARDWARE, ReportKind.CONFIGURATION]


@dataclass
class Config:
    # Auth
    servers: List[str]
    username: str
    password: str
    port: int
    verify_ssl: bool

    # Scope
    selector: HostSelector

    # Reports
    reports: List[ReportKind]

    # Output
    output: str
    folder: Optional[str]

    # Patching
    baseline: Optional[str] = None
    baselines_file: Path = DEFAULT_BASELINES_PATH
    scan_interval: float = 5.0
    scan_timeout: float = 600.0

    # RAC probe
    wsman_port: int = 443
    wsman_timeout: int = 30

    debug: bool = False
    warnings: List[str] = field(default_factory=list)


def _split(value: Optional[str]) -> List[str]:
    # blanks are kept so the resolver can warn about them
    if not value:
        return []
    return [v.strip() for v in value.split(",")]


def _read_lines(path: str) -> List[str]:
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.lstrip().startswith("#")]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ESXi host inventory reporter")

    # Connection
    parser.add_argument("--server", help="Comma-separated vCenter/ESXi servers")
    parser.add_argument("--user", help="vSphere username")
    parser.add_argument("--password", help="vSphere password")
    parser.add_argument("--port", type=int, default=443, help="vSphere API port (default 443)")
    parser.add_argument("--insecure", action="store_true", help="Ignore SSL cert validation")
    parser.add_argument("--env-file", help="Path to .env file")

    # Scope (hosts > clusters > datacenters > all)
    parser.add_argument("--hosts", help="Comma-separated list of hosts")
    parser.add_argument("--hosts-file", help="Path to file with hosts (one per line)")
    parser.add_argument("--clusters", help="Comma-separated list of clusters")
    parser.add_argument("--datacenters", help="Comma-separated list of datacenters")
    parser.add_argument("--all-hosts", action="store_true", help="Every host on every connected server")

    # Reports
    parser.add_argument("--hardware", action="store_true", help="Hardware report")
    parser.add_argument("--configuration", action="store_true", help="Configuration report")
    parser.add_argument("--network-physical", action="store_true", help="Physical NIC report")
    parser.add_argument("--network-vmkernel", action="store_true", help="VMkernel adapter report")
    parser.add_argument("--network-vswitch", action="store_true", help="Virtual switch report")
    parser.add_argument("--patching", action="store_true", help="Patch compliance report")

    # Output
    parser.add_argument("--output", default="screen", choices=["screen", "csv", "xlsx", "return"], help="Output mode")
    parser.add_argument("--folder", help="Destination folder for CSV/XLSX exports")

    # Patching
    parser.add_argument("--baseline", help="Baseline name pattern (wildcards allowed)")
    parser.add_argument("--baselines-file", help="Path to baselines JSON catalogue")
    parser.add_argument("--scan-interval", type=float, default=5.0, help="Seconds between scan progress checks")
    parser.add_argument("--scan-timeout", type=float, default=600.0, help="Max seconds to wait for a scan")

    # RAC probe
    parser.add_argument("--wsman-port", type=int, default=443, help="CIM/WS-Management port on the host")
    parser.add_argument("--wsman-timeout", type=int, default=30, help="WS-Management timeout (sec)")

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def load_config(argv: Optional[List[str]] = None) -> Config:
    args = build_parser().parse_args(argv)

    # Load Env
    env_path = Path(args.env_file) if args.env_file else DEFAULT_ENV_PATH
    if env_path.exists():
        load_dotenv(env_path)

    servers = _split(args.server or os.getenv("VCENTER_HOST"))
    username = args.user or os.getenv("VCENTER_USER")
    password = args.password or os.getenv("VCENTER_PASS") or os.getenv("VCENTER_PASSWORD")

    warnings: List[str] = []
    hosts: List[str] = []
    if args.hosts_file:
        if os.path.isfile(args.hosts_file):
            hosts.extend(_read_lines(args.hosts_file))
        else:
            warnings.append(f"Hosts file {args.hosts_file} not found")
    hosts.extend(_split(args.hosts))
    clusters = _split(args.clusters)
    datacenters = _split(args.datacenters)
    for option, names in (("--hosts", hosts), ("--clusters", clusters), ("--datacenters", datacenters)):
        if names and not any(names):
            warnings.append(f"Ignoring {option}: only blank entries given")

    selector = HostSelector.from_options(
        hosts=hosts,
        clusters=clusters,
        datacenters=datacenters,
        all_hosts=args.all_hosts,
    )

    flags = [
        (args.hardware, ReportKind.HARDWARE),
        (args.configuration, ReportKind.CONFIGURATION),
        (args.network_physical, ReportKind.NETWORK_PHYSICAL),
        (args.network_vmkernel, ReportKind.NETWORK_VMKERNEL),
        (args.network_vswitch, ReportKind.NETWORK_VSWITCH),
        (args.patching, ReportKind.PATCHING),
    ]
    reports = [kind for on, kind in flags if on] or list(DEFAULT_REPORTS)

    return Config(
        servers=[s for s in servers if s],
        username=username or "",
        password=password or "",
        port=args.port,
        verify_ssl=not args.insecure,
        selector=selector,
        reports=reports,
        output=args.output,
        folder=args.folder,
        baseline=args.baseline,
        baselines_file=Path(args.baselines_file) if args.baselines_file else DEFAULT_BASELINES_PATH,
        scan_interval=args.scan_interval,
        scan_timeout=args.scan_timeout,
        wsman_port=args.wsman_port,
        wsman_timeout=args.wsman_timeout,
        debug=args.debug,
        warnings=warnings,
    )
