# host.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

STATUS_CONNECTED = "conectado"
STATUS_DISCONNECTED = "desconectado"
VALID_STATUSES = (STATUS_CONNECTED, STATUS_DISCONNECTED)


def format_timestamp(value: datetime) -> str:
    """Formats a datetime as an RFC 3339 string with second precision."""
    return value.isoformat(timespec="seconds")


def parse_timestamp(value: str) -> datetime:
    """Parses an RFC 3339 string, accepting a trailing 'Z' for UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Naive values are taken as local time
        parsed = parsed.astimezone()
    return parsed


@dataclass
class ObservedHost:
    ip: str
    display_name: str
    os_fingerprint: str = ""
    open_ports: List[str] = field(default_factory=list)

    def add_port(self, port: str):
        if port not in self.open_ports:
            self.open_ports.append(port)


@dataclass
class HostRecord:
    ip: str
    display_name: str
    first_seen: datetime
    last_seen: datetime
    os_fingerprint: str = ""
    open_ports: List[str] = field(default_factory=list)
    status: str = STATUS_CONNECTED

    @property
    def connected(self) -> bool:
        return self.status == STATUS_CONNECTED

    @classmethod
    def from_observation(cls, observed: ObservedHost, now: datetime) -> "HostRecord":
        """Starts a new connection episode for an observed host."""
        return cls(
            ip=observed.ip,
            display_name=observed.display_name,
            os_fingerprint=observed.os_fingerprint,
            open_ports=list(observed.open_ports),
            first_seen=now,
            last_seen=now,
        )

    def to_dict(self) -> Dict:
        return {
            "ip": self.ip,
            "equipo": self.display_name,
            "sistema": self.os_fingerprint,
            "puertos": list(self.open_ports),
            "firstSeen": format_timestamp(self.first_seen),
            "lastSeen": format_timestamp(self.last_seen),
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "HostRecord":
        """Builds a record from its persisted JSON form.

        Raises:
            ValueError: if a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Host record must be an object, got {type(data).__name__}")
        try:
            ip = data["ip"]
            first_seen = parse_timestamp(data["firstSeen"])
            last_seen = parse_timestamp(data["lastSeen"])
        except KeyError as err:
            raise ValueError(f"Host record is missing field {err}") from err
        except (TypeError, AttributeError) as err:
            raise ValueError(f"Host record has an invalid timestamp: {err}") from err

        status = data.get("status", STATUS_CONNECTED)
        if status not in VALID_STATUSES:
            raise ValueError(f"Host record for {ip} has unknown status {status!r}")

        return cls(
            ip=ip,
            display_name=data.get("equipo") or ip,
            os_fingerprint=data.get("sistema") or "",
            open_ports=[str(port) for port in data.get("puertos") or []],
            first_seen=first_seen,
            last_seen=last_seen,
            status=status,
        )
