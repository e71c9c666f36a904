# network_monitor.py
import argparse
import logging
import signal
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dynaconf import Dynaconf

from data import InventoryLoadError, load_host_data, save_host_data
from host import HostRecord
from reconcile import reconcile, validate_inventory
from scanners import BaseScanner, ScanError, get_scanner
from settings import load_config

logger = logging.getLogger(__name__)


def run_cycle(scanner: BaseScanner, inventory: List[HostRecord], json_file: Path,
              now: Optional[datetime] = None) -> List[HostRecord]:
    """Runs one scan, reconciles it into the inventory and saves the result.

    If the scan fails the cycle is skipped and the inventory is returned
    unchanged. A failed save is logged; the reconciled inventory is still
    returned so the next cycle builds on it.
    """
    logger.info("Running network scan...")
    try:
        snapshot = scanner.get_snapshot()
    except ScanError as err:
        logger.error("Error running scan: %s. Skipping this cycle.", err)
        return inventory

    now = now or datetime.now().astimezone()
    updated = reconcile(inventory, snapshot, now)
    validate_inventory(updated)

    if save_host_data(updated, json_file):
        logger.info(f"Host inventory saved to {json_file}")
    return updated


def run_monitor(config: Dynaconf, stop_event: threading.Event,
                max_cycles: Optional[int] = None) -> List[HostRecord]:
    """Scans the network on a fixed interval until stop_event is set.

    Raises:
        InventoryLoadError: if the stored inventory cannot be loaded.
    """
    json_file = Path(config.general.json_file)
    interval = config.general.scan_interval
    scanner = get_scanner(config)

    inventory = load_host_data(json_file)
    logger.info("Monitor started: interval=%ds, known records=%d", interval, len(inventory))

    cycles = 0
    while not stop_event.is_set():
        inventory = run_cycle(scanner, inventory, json_file)
        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            break
        stop_event.wait(interval)

    logger.info("Monitor stopped after %d cycles", cycles)
    return inventory


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="LAN host presence monitor")
    parser.add_argument("--settings", type=Path, default=None, help="Path to the settings TOML file")
    parser.add_argument("--once", action="store_true", help="Run a single scan cycle and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    config = load_config(args.settings)

    stop_event = threading.Event()

    def _request_stop(signum, frame):
        logger.info("Signal %d received, stopping after the current cycle", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    try:
        run_monitor(config, stop_event, max_cycles=1 if args.once else None)
    except InventoryLoadError as err:
        logger.critical("Error loading the host inventory: %s", err)
        sys.exit(1)

if __name__ == "__main__":
    main()
