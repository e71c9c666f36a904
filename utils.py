# utils.py
import re
from typing import List


def is_valid_ipv4(ip: str) -> bool:
    """Checks if a string is a valid IPv4 address."""
    pattern = r"^(\d{1,3}\.){3}\d{1,3}$"
    if re.match(pattern, ip):
        parts = ip.split('.')
        return all(0 <= int(part) <= 255 for part in parts)
    return False

def privileged_command(args: List[str], use_sudo: bool) -> List[str]:
    """Prefixes a command with sudo when the tool needs elevated privileges."""
    if use_sudo:
        return ["sudo", *args]
    return list(args)

def format_ports(ports) -> str:
    """Formats a port list from the settings as nmap expects it ('22,80,443')."""
    if isinstance(ports, str):
        return ",".join(part.strip() for part in ports.split(",") if part.strip())
    return ",".join(str(port) for port in ports)
