# scanners/nmap_scanner.py
import logging
from typing import Dict

import nmap

from .base import BaseScanner, ScanError
from host import ObservedHost
from utils import format_ports
from dynaconf import Dynaconf

logger = logging.getLogger(__name__)


def _os_fingerprint(host_info) -> str:
    """Returns the best OS match nmap reported for a host, or ''."""
    matches = host_info.get("osmatch") or []
    if matches:
        return matches[0].get("name", "")
    return ""


def observed_host(ip: str, host_info) -> ObservedHost:
    """Builds an ObservedHost from python-nmap's result for one host."""
    observed = ObservedHost(
        ip=ip,
        display_name=host_info.hostname() or ip,
        os_fingerprint=_os_fingerprint(host_info),
    )
    for port, port_info in sorted(host_info.get("tcp", {}).items()):
        if port_info.get("state") == "open":
            observed.add_port(str(port))
    return observed


def snapshot_from_scan(scanner) -> Dict[str, ObservedHost]:
    """Collects the hosts that are up from a completed PortScanner run."""
    hosts: Dict[str, ObservedHost] = {}
    for ip in scanner.all_hosts():
        host_info = scanner[ip]
        if host_info.state() != "up":
            continue
        hosts[ip] = observed_host(ip, host_info)
    return hosts


class NmapScanner(BaseScanner):
    """Scan snapshot provider that runs nmap with OS detection."""

    def __init__(self, config: Dynaconf):
        self.config = config
        self.target = config.get("target")
        self.ports = format_ports(config.get("ports"))
        self.use_sudo = config.get("use_sudo", True)
        self.timeout = config.get("timeout", 600)

    def get_snapshot(self) -> Dict[str, ObservedHost]:
        """Runs nmap against the configured target and collects the hosts found."""
        logger.info("Running nmap on %s (ports %s)", self.target, self.ports)
        try:
            scanner = nmap.PortScanner()
            scanner.scan(hosts=self.target, ports=self.ports, arguments="-O",
                         sudo=self.use_sudo, timeout=self.timeout)
        except nmap.PortScannerTimeout as err:
            raise ScanError(f"nmap did not finish within {self.timeout}s") from err
        except nmap.PortScannerError as err:
            raise ScanError(f"nmap failed: {err}") from err
        except (OSError, UnicodeDecodeError) as err:
            raise ScanError(f"nmap could not be run: {err}") from err

        logger.info("Processing nmap output...")
        hosts = snapshot_from_scan(scanner)
        logger.info("nmap reported %d hosts on %s", len(hosts), self.target)
        return hosts
