# dns_monitor.py
import argparse
import functools
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from capture import DnsCapture, DnsLogWriter, resolve_hostname, run_capture_pipeline
from settings import load_config

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None):
    """Captures DNS queries on the configured interface and logs them."""
    parser = argparse.ArgumentParser(description="DNS query logger")
    parser.add_argument("--settings", type=Path, default=None, help="Path to the settings TOML file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')

    config = load_config(args.settings)
    capture_config = config.capture

    capture = DnsCapture(
        interface=capture_config.interface,
        display_filter=capture_config.display_filter,
        use_sudo=capture_config.use_sudo,
        resolver=functools.partial(resolve_hostname, timeout=capture_config.resolve_timeout),
    )
    writer = DnsLogWriter(Path(capture_config.log_file))

    stop_event = threading.Event()
    signal.signal(signal.SIGINT, lambda signum, frame: stop_event.set())
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    logger.info(f"Logging DNS queries on {capture.interface} to {writer.log_file}")
    if not run_capture_pipeline(capture, writer, stop_event):
        sys.exit(1)

if __name__ == "__main__":
    main()
