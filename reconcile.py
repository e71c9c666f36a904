# reconcile.py
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from host import HostRecord, ObservedHost, STATUS_DISCONNECTED

logger = logging.getLogger(__name__)


def find_connected_host(inventory: List[HostRecord], ip: str) -> Optional[int]:
    """Returns the index of the connected record for an IP, or None."""
    for index, record in enumerate(inventory):
        if record.ip == ip and record.connected:
            return index
    return None


def host_in_snapshot(snapshot: Dict[str, ObservedHost], ip: str) -> bool:
    """Checks whether an IP was observed in the current scan."""
    return ip in snapshot


def _refresh_and_add_hosts(inventory: List[HostRecord], snapshot: Dict[str, ObservedHost],
                           now: datetime) -> int:
    """Refreshes last_seen of connected hosts and appends new episodes.

    Attributes of an already connected host are left as they were when the
    episode started; only the timestamp moves.
    """
    added = 0
    for ip, observed in snapshot.items():
        index = find_connected_host(inventory, ip)
        if index is not None:
            current = inventory[index]
            inventory[index] = replace(current, last_seen=now, open_ports=list(current.open_ports))
            logger.debug(f"Host still connected: {ip}")
        else:
            inventory.append(HostRecord.from_observation(observed, now))
            logger.info(f"New host detected: {ip} ({observed.display_name})")
            added += 1
    return added


def _mark_disconnected_hosts(inventory: List[HostRecord], snapshot: Dict[str, ObservedHost],
                             now: datetime) -> int:
    """Marks connected hosts missing from the snapshot as disconnected."""
    disconnected = 0
    for index, record in enumerate(inventory):
        if record.connected and not host_in_snapshot(snapshot, record.ip):
            inventory[index] = replace(record, last_seen=now, status=STATUS_DISCONNECTED,
                                       open_ports=list(record.open_ports))
            logger.info(f"Host {record.ip} disconnected at {now.isoformat(timespec='seconds')}")
            disconnected += 1
    return disconnected


def reconcile(inventory: List[HostRecord], snapshot: Dict[str, ObservedHost],
              now: datetime) -> List[HostRecord]:
    """Merges a scan snapshot into the host inventory.

    Args:
        inventory: Records from previous cycles, in insertion order. Not modified.
        snapshot: Hosts observed in this cycle, keyed by IP.
        now: Instant of the cycle, used for every timestamp written.

    Returns:
        List[HostRecord]: The full updated inventory. Records are only ever
        appended or updated, never removed.
    """
    updated = list(inventory)
    added = _refresh_and_add_hosts(updated, snapshot, now)
    disconnected = _mark_disconnected_hosts(updated, snapshot, now)
    logger.info("Reconciled %d observed hosts: %d new, %d disconnected, %d records total",
                len(snapshot), added, disconnected, len(updated))
    return updated


def validate_inventory(inventory: List[HostRecord]) -> List[str]:
    """Checks the inventory invariants and logs any violation found."""
    problems = []
    connected_ips = set()
    for record in inventory:
        if record.connected:
            if record.ip in connected_ips:
                problems.append(f"IP {record.ip} has more than one connected record")
            connected_ips.add(record.ip)
        if record.first_seen > record.last_seen:
            problems.append(f"IP {record.ip} has firstSeen after lastSeen")

    if problems:
        logger.error("Inventory validation found %d problem(s):", len(problems))
        for problem in problems:
            logger.error(f"  - {problem}")
    return problems
