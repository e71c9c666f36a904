# capture.py
import json
import queue
import logging
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import nmap

from utils import is_valid_ipv4, privileged_command

logger = logging.getLogger(__name__)

UNKNOWN_HOSTNAME = "desconocido"

# Marks the end of the capture stream for the log writer.
_CLOSED = object()


class CaptureError(Exception):
    """The packet capture tool failed to start or exited with an error."""


@dataclass
class DnsQuery:
    source_ip: str
    domain: str
    hostname: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "ipOrigen": self.source_ip,
            "dominio": self.domain,
            "equipo": self.hostname,
            "fecha": self.timestamp.strftime("%d-%m-%Y"),
            "hora": self.timestamp.strftime("%H:%M:%S"),
        }


def parse_capture_line(line: str) -> Optional[Tuple[str, str]]:
    """Splits a tshark fields line into (source ip, queried domain)."""
    fields = line.split()
    if len(fields) < 2:
        return None
    source_ip, domain = fields[0], fields[1]
    if not is_valid_ipv4(source_ip):
        return None
    return source_ip, domain


def resolve_hostname(ip: str, timeout: int = 30) -> str:
    """Looks up the hostname of an IP with a reverse-DNS nmap ping scan."""
    try:
        scanner = nmap.PortScanner()
        scanner.scan(hosts=ip, arguments="-sn -R", timeout=timeout)
    except (nmap.PortScannerError, OSError, UnicodeDecodeError) as err:
        logger.warning(f"Error resolving hostname for {ip}: {err}")
        return UNKNOWN_HOSTNAME

    if ip not in scanner.all_hosts():
        return UNKNOWN_HOSTNAME
    return scanner[ip].hostname() or ip


def decode_lines(stream: Iterable[bytes]) -> Iterator[str]:
    """Decodes raw capture output line by line, skipping lines that are not UTF-8."""
    for raw in stream:
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError as err:
            logger.debug(f"Skipping undecodable capture line {raw!r}: {err}")


class DnsCapture:
    """Streams DNS queries seen on an interface using tshark."""

    def __init__(self, interface: str, display_filter: str, use_sudo: bool = True,
                 resolver: Optional[Callable[[str], str]] = None):
        self.interface = interface
        self.display_filter = display_filter
        self.use_sudo = use_sudo
        self.resolver = resolver or resolve_hostname

    def build_command(self) -> List[str]:
        return privileged_command(
            ["tshark", "-i", self.interface, "-Y", self.display_filter,
             "-T", "fields", "-e", "ip.src", "-e", "dns.qry.name"],
            self.use_sudo,
        )

    def produce(self, lines: Iterable[str], out_queue: queue.Queue,
                stop_event: Optional[threading.Event] = None) -> int:
        """Parses capture lines and puts one DnsQuery per new query on the queue.

        Identical lines are only reported once for the lifetime of the capture.
        Lines that cannot be parsed are skipped.

        Returns:
            int: Number of queries sent.
        """
        seen = set()
        sent = 0
        for line in lines:
            if stop_event is not None and stop_event.is_set():
                break
            line = line.rstrip("\n")
            if line in seen:
                continue
            seen.add(line)

            parsed = parse_capture_line(line)
            if parsed is None:
                logger.debug(f"Skipping capture line: {line!r}")
                continue
            source_ip, domain = parsed

            hostname = self.resolver(source_ip)
            out_queue.put(DnsQuery(source_ip=source_ip, domain=domain,
                                   hostname=hostname, timestamp=datetime.now()))
            sent += 1
        return sent

    def run(self, out_queue: queue.Queue, stop_event: Optional[threading.Event] = None) -> int:
        """Runs tshark until it exits or the stop event is set.

        The queue is closed when this returns, whether or not it succeeded.

        Raises:
            CaptureError: if tshark cannot be started or fails.
        """
        try:
            command = self.build_command()
            logger.info("Starting capture: %s", " ".join(command))
            try:
                process = subprocess.Popen(command, stdout=subprocess.PIPE)
            except OSError as err:
                raise CaptureError(f"tshark could not be started: {err}") from err

            if stop_event is not None:
                threading.Thread(target=self._terminate_on_stop,
                                 args=(process, stop_event), daemon=True).start()

            try:
                sent = self.produce(decode_lines(process.stdout), out_queue, stop_event)
            finally:
                process.stdout.close()
                returncode = process.wait()

            if returncode != 0 and not (stop_event is not None and stop_event.is_set()):
                raise CaptureError(f"tshark exited with status {returncode}")
            logger.info("Capture finished after %d queries", sent)
            return sent
        finally:
            out_queue.put(_CLOSED)

    @staticmethod
    def _terminate_on_stop(process: subprocess.Popen, stop_event: threading.Event):
        while process.poll() is None:
            if stop_event.wait(0.5):
                logger.info("Stopping capture")
                process.terminate()
                return


class DnsLogWriter:
    """Appends captured DNS queries to a newline-delimited JSON log."""

    def __init__(self, log_file: Path):
        self.log_file = Path(log_file)

    def run(self, in_queue: queue.Queue) -> int:
        """Writes queries until the queue is closed and drained.

        Returns:
            int: Number of records written.

        Raises:
            OSError: if the log file cannot be opened.
        """
        written = 0
        with self.log_file.open("a", encoding="utf-8") as file:
            while True:
                item = in_queue.get()
                if item is _CLOSED:
                    break
                try:
                    file.write(json.dumps(item.to_dict(), ensure_ascii=False) + "\n")
                    file.flush()
                    written += 1
                except (TypeError, ValueError) as err:
                    logger.error(f"Error serializing record: {err}")
                except OSError as err:
                    logger.error(f"Error writing to {self.log_file}: {err}")
        logger.info("Log writer finished after %d records", written)
        return written


def _drain(in_queue: queue.Queue):
    while in_queue.get() is not _CLOSED:
        pass


def run_capture_pipeline(capture: DnsCapture, writer: DnsLogWriter,
                         stop_event: Optional[threading.Event] = None) -> bool:
    """Runs the capture and the log writer until the capture ends.

    The capture hands each query to the writer through a single-slot queue,
    so it blocks while the writer is busy. When the capture ends the writer
    finishes the pending records and exits.

    Returns:
        bool: False if the capture or the log writer failed.
    """
    if stop_event is None:
        stop_event = threading.Event()
    channel: queue.Queue = queue.Queue(maxsize=1)
    errors: List[Exception] = []

    def _capture():
        try:
            capture.run(channel, stop_event)
        except CaptureError as err:
            logger.error(f"Error in capture: {err}")
            errors.append(err)
        except Exception as err:
            logger.exception("Capture stopped unexpectedly")
            errors.append(err)

    def _write():
        try:
            writer.run(channel)
        except OSError as err:
            logger.error(f"Error opening log file {writer.log_file}: {err}")
            errors.append(err)
            stop_event.set()
            _drain(channel)

    writer_thread = threading.Thread(target=_write, name="dns-log-writer")
    capture_thread = threading.Thread(target=_capture, name="dns-capture")
    writer_thread.start()
    capture_thread.start()
    capture_thread.join()
    writer_thread.join()
    return not errors
