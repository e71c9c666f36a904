"""Unit tests for merging scan snapshots into the host inventory."""
from __future__ import annotations

from collections import Counter
from datetime import timedelta

from host import STATUS_CONNECTED, STATUS_DISCONNECTED
from reconcile import find_connected_host, host_in_snapshot, reconcile, validate_inventory


def _connected_counts(inventory):
    return Counter(r.ip for r in inventory if r.status == STATUS_CONNECTED)


class TestNewHosts:
    """Hosts seen for the first time start a new episode."""

    def test_first_run_creates_record(self, t0, make_observed) -> None:
        snapshot = {"10.0.0.5": make_observed("10.0.0.5", name="printer")}
        result = reconcile([], snapshot, t0)

        assert len(result) == 1
        record = result[0]
        assert record.ip == "10.0.0.5"
        assert record.display_name == "printer"
        assert record.status == STATUS_CONNECTED
        assert record.first_seen == t0
        assert record.last_seen == t0

    def test_attributes_copied_from_observation(self, t0, make_observed) -> None:
        snapshot = {"10.0.0.7": make_observed("10.0.0.7", name="nas",
                                              os_fingerprint="Linux 5.X", ports=["22", "443"])}
        record = reconcile([], snapshot, t0)[0]
        assert record.os_fingerprint == "Linux 5.X"
        assert record.open_ports == ["22", "443"]

    def test_new_hosts_appended_after_existing(self, t0, t1, make_observed, make_record) -> None:
        inventory = [make_record("10.0.0.1")]
        snapshot = {
            "10.0.0.1": make_observed("10.0.0.1"),
            "10.0.0.2": make_observed("10.0.0.2"),
            "10.0.0.3": make_observed("10.0.0.3"),
        }
        result = reconcile(inventory, snapshot, t1)
        assert [r.ip for r in result] == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]


class TestRefresh:
    """Hosts still present only get their last_seen moved forward."""

    def test_last_seen_updated(self, t0, t1, make_observed, make_record) -> None:
        inventory = [make_record("10.0.0.5")]
        result = reconcile(inventory, {"10.0.0.5": make_observed("10.0.0.5")}, t1)

        assert len(result) == 1
        assert result[0].first_seen == t0
        assert result[0].last_seen == t1
        assert result[0].status == STATUS_CONNECTED

    def test_attributes_frozen_during_episode(self, t1, make_observed, make_record) -> None:
        inventory = [make_record("10.0.0.5", name="printer", ports=["80"])]
        snapshot = {"10.0.0.5": make_observed("10.0.0.5", name="renamed",
                                              os_fingerprint="Other OS", ports=["80", "443"])}
        record = reconcile(inventory, snapshot, t1)[0]

        assert record.display_name == "printer"
        assert record.os_fingerprint == ""
        assert record.open_ports == ["80"]

    def test_same_snapshot_twice_is_stable(self, t0, t1, t2, make_observed) -> None:
        snapshot = {
            "10.0.0.1": make_observed("10.0.0.1"),
            "10.0.0.2": make_observed("10.0.0.2"),
        }
        first = reconcile([], snapshot, t1)
        second = reconcile(first, snapshot, t2)

        assert len(second) == len(first) == 2
        assert {r.ip for r in second if r.status == STATUS_CONNECTED} == {"10.0.0.1", "10.0.0.2"}
        assert all(r.last_seen == t2 for r in second)
        assert all(r.first_seen == t1 for r in second)


class TestDisconnection:
    """Connected hosts missing from the snapshot are marked disconnected."""

    def test_missing_host_disconnected(self, t0, t1, make_record) -> None:
        inventory = [make_record("10.0.0.5")]
        result = reconcile(inventory, {}, t1)

        assert len(result) == 1
        assert result[0].status == STATUS_DISCONNECTED
        assert result[0].last_seen == t1
        assert result[0].first_seen == t0

    def test_already_disconnected_untouched(self, t0, t2, make_record) -> None:
        inventory = [make_record("10.0.0.5", connected=False)]
        result = reconcile(inventory, {}, t2)

        assert result[0].status == STATUS_DISCONNECTED
        assert result[0].last_seen == t0

    def test_only_absent_hosts_disconnected(self, t1, make_observed, make_record) -> None:
        inventory = [make_record("10.0.0.1"), make_record("10.0.0.2")]
        result = reconcile(inventory, {"10.0.0.2": make_observed("10.0.0.2")}, t1)

        statuses = {r.ip: r.status for r in result}
        assert statuses == {"10.0.0.1": STATUS_DISCONNECTED, "10.0.0.2": STATUS_CONNECTED}


class TestReconnection:
    """A host returning after a disconnection starts a new episode."""

    def test_new_record_appended(self, t0, t2, make_observed, make_record) -> None:
        old = make_record("10.0.0.5", connected=False)
        result = reconcile([old], {"10.0.0.5": make_observed("10.0.0.5")}, t2)

        assert len(result) == 2
        assert result[0] == old
        assert result[0].status == STATUS_DISCONNECTED
        assert result[1].status == STATUS_CONNECTED
        assert result[1].first_seen == t2
        assert result[1].last_seen == t2

    def test_full_lifecycle(self, t0, t1, t2, make_observed) -> None:
        snapshot = {"10.0.0.5": make_observed("10.0.0.5")}
        inventory = reconcile([], snapshot, t0)
        inventory = reconcile(inventory, {}, t1)
        inventory = reconcile(inventory, snapshot, t2)

        assert [(r.status, r.first_seen, r.last_seen) for r in inventory] == [
            (STATUS_DISCONNECTED, t0, t1),
            (STATUS_CONNECTED, t2, t2),
        ]


class TestInvariants:
    """Properties that hold across any sequence of cycles."""

    def test_invariants_over_sequence(self, t0, make_observed) -> None:
        sequence = [
            ["10.0.0.1", "10.0.0.2"],
            ["10.0.0.2"],
            [],
            ["10.0.0.1", "10.0.0.2", "10.0.0.3"],
            ["10.0.0.1", "10.0.0.2", "10.0.0.3"],
            ["10.0.0.3"],
            ["10.0.0.1"],
        ]
        inventory = []
        for step, ips in enumerate(sequence):
            snapshot = {ip: make_observed(ip) for ip in ips}
            previous = len(inventory)
            inventory = reconcile(inventory, snapshot, t0 + timedelta(minutes=step))

            assert len(inventory) >= previous
            assert all(count <= 1 for count in _connected_counts(inventory).values())
            assert all(r.first_seen <= r.last_seen for r in inventory)
            assert set(_connected_counts(inventory)) == set(ips)
            assert validate_inventory(inventory) == []

    def test_input_not_modified(self, t0, t1, make_observed, make_record) -> None:
        inventory = [make_record("10.0.0.1"), make_record("10.0.0.2")]
        reconcile(inventory, {"10.0.0.1": make_observed("10.0.0.1")}, t1)

        assert len(inventory) == 2
        assert all(r.status == STATUS_CONNECTED for r in inventory)
        assert all(r.last_seen == t0 for r in inventory)

    def test_result_does_not_share_port_lists(self, t1, make_observed, make_record) -> None:
        inventory = [make_record("10.0.0.1", ports=["22"]), make_record("10.0.0.2", ports=["80"])]
        result = reconcile(inventory, {"10.0.0.1": make_observed("10.0.0.1")}, t1)

        result[0].open_ports.append("443")
        result[1].open_ports.append("8080")

        assert inventory[0].open_ports == ["22"]
        assert inventory[1].open_ports == ["80"]


class TestHelpers:
    """Lookup helpers and inventory validation."""

    def test_find_connected_host_skips_disconnected(self, make_record) -> None:
        inventory = [make_record("10.0.0.5", connected=False), make_record("10.0.0.5")]
        assert find_connected_host(inventory, "10.0.0.5") == 1

    def test_find_connected_host_missing(self, make_record) -> None:
        inventory = [make_record("10.0.0.5", connected=False)]
        assert find_connected_host(inventory, "10.0.0.5") is None

    def test_host_in_snapshot(self, make_observed) -> None:
        snapshot = {"10.0.0.1": make_observed("10.0.0.1")}
        assert host_in_snapshot(snapshot, "10.0.0.1")
        assert not host_in_snapshot(snapshot, "10.0.0.2")

    def test_validate_reports_duplicate_connected(self, make_record) -> None:
        problems = validate_inventory([make_record("10.0.0.5"), make_record("10.0.0.5")])
        assert len(problems) == 1
        assert "10.0.0.5" in problems[0]

    def test_validate_reports_time_order(self, t0, t1, make_record) -> None:
        problems = validate_inventory([make_record("10.0.0.5", first_seen=t1, last_seen=t0)])
        assert len(problems) == 1
        assert "firstSeen" in problems[0]
