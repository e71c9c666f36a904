"""Shared test fixtures for the network monitor tests."""

from datetime import datetime, timedelta, timezone

import pytest

from host import HostRecord, ObservedHost, STATUS_DISCONNECTED


T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def t1() -> datetime:
    return T0 + timedelta(minutes=1)


@pytest.fixture
def t2() -> datetime:
    return T0 + timedelta(minutes=2)


@pytest.fixture
def make_observed():
    def _make(ip: str, name: str = "", os_fingerprint: str = "", ports=None) -> ObservedHost:
        return ObservedHost(
            ip=ip,
            display_name=name or ip,
            os_fingerprint=os_fingerprint,
            open_ports=list(ports or []),
        )
    return _make


@pytest.fixture
def make_record():
    def _make(ip: str, first_seen: datetime = T0, last_seen: datetime = T0,
              connected: bool = True, name: str = "", ports=None) -> HostRecord:
        record = HostRecord(
            ip=ip,
            display_name=name or ip,
            first_seen=first_seen,
            last_seen=last_seen,
            open_ports=list(ports or []),
        )
        if not connected:
            record.status = STATUS_DISCONNECTED
        return record
    return _make
