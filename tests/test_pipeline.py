import logging

from triage_engine import pipeline
from triage_engine.models import (
    UNKNOWN_IDENTITY,
    ClassifierConfig,
    ConnectionRecord,
    ConnectionState,
    FlagKind,
    ProcessIdentity,
)
from triage_engine.sources import EnumerationError

PORTS = frozenset({4444})

NAMES = {
    10: ProcessIdentity("zsh", "/bin/zsh"),
    20: ProcessIdentity("Firefox", "/usr/lib/firefox/firefox"),
    30: ProcessIdentity("beacon", ""),
    40: ProcessIdentity("apache2", "/usr/sbin/apache2"),
}


def fake_resolver(pid):
    return NAMES.get(pid, UNKNOWN_IDENTITY)


def conn(pid, remote="", remote_port=0, state=ConnectionState.ESTABLISHED, local_port=40000):
    return ConnectionRecord("10.0.0.5", local_port, remote, remote_port, state, pid)


def snapshot():
    return [
        conn(10, "192.168.1.2", 22),  # no flags
        conn(20, "10.0.0.9", 4444),  # CHECK_PORT
        conn(30, "8.8.8.8", 80, state=ConnectionState.LISTEN),  # LISTENING + PUBLIC_REMOTE
        conn(40, "192.168.1.3", 443, local_port=None),  # malformed
    ]


class StaticSource:
    def __init__(self, records):
        self.records = records

    def snapshot(self):
        return list(self.records)


class FailingSource:
    def snapshot(self):
        raise EnumerationError("access denied")


def test_flagged_rows_sort_first_then_by_name():
    rows = pipeline.run(snapshot(), PORTS, resolver=fake_resolver)

    assert [row.identity.name for row in rows] == ["beacon", "Firefox", "zsh"]
    assert rows[0].flags == (FlagKind.LISTENING, FlagKind.PUBLIC_REMOTE)
    assert rows[1].flags == (FlagKind.CHECK_PORT,)
    assert rows[2].flags == ()


def test_name_tie_break_is_case_insensitive():
    records = [conn(10, "8.8.8.8", 1), conn(40, "8.8.8.8", 1)]
    resolver = {10: ProcessIdentity("Zebra"), 40: ProcessIdentity("alpha")}.get
    rows = pipeline.run(records, PORTS, resolver=resolver)
    assert [row.identity.name for row in rows] == ["alpha", "Zebra"]


def test_records_without_local_port_are_dropped():
    rows = pipeline.run(snapshot(), PORTS, resolver=fake_resolver)
    assert all(row.connection.local_port is not None for row in rows)
    assert all(row.connection.owner_pid != 40 for row in rows)


def test_unresolved_process_is_still_classified():
    rows = pipeline.run([conn(999, "8.8.8.8", 4444)], PORTS, resolver=fake_resolver)
    assert len(rows) == 1
    assert rows[0].identity == ProcessIdentity(name="Unknown", path="")
    assert rows[0].flags == (FlagKind.CHECK_PORT, FlagKind.PUBLIC_REMOTE)


def test_raising_resolver_does_not_abort_batch(caplog):
    def flaky(pid):
        if pid == 20:
            raise RuntimeError("boom")
        return fake_resolver(pid)

    logger = logging.getLogger("test.pipeline.flaky")
    with caplog.at_level(logging.WARNING, logger="test.pipeline.flaky"):
        rows = pipeline.run(snapshot(), PORTS, resolver=flaky, logger=logger)

    assert len(rows) == 3
    unknown = [row for row in rows if row.connection.owner_pid == 20]
    assert unknown[0].identity == UNKNOWN_IDENTITY
    assert "Resolver failed for pid 20" in caplog.text


def test_run_is_idempotent():
    first = [row.to_row() for row in pipeline.run(snapshot(), PORTS, resolver=fake_resolver)]
    second = [row.to_row() for row in pipeline.run(snapshot(), PORTS, resolver=fake_resolver)]
    assert first == second


def test_concurrent_resolution_matches_sequential():
    records = snapshot() * 5
    sequential = pipeline.run(records, PORTS, resolver=fake_resolver)
    threaded = pipeline.run(records, PORTS, resolver=fake_resolver, workers=4)
    assert sequential == threaded


def test_scan_reports_enumeration_failure():
    report = pipeline.scan(FailingSource(), ClassifierConfig.from_ports([4444]), resolver=fake_resolver)
    assert report.enumeration_failed
    assert report.records == []
    assert "access denied" in report.error


def test_scan_distinguishes_empty_table_from_failure():
    report = pipeline.scan(StaticSource([]), resolver=fake_resolver)
    assert not report.enumeration_failed
    assert report.records == []


def test_scan_uses_config_ports():
    report = pipeline.scan(StaticSource(snapshot()), ClassifierConfig.from_ports([22]), resolver=fake_resolver)
    assert report.enumerated == 4
    assert len(report.records) == 3
    zsh = [row for row in report.records if row.identity.name == "zsh"][0]
    assert zsh.flags == (FlagKind.CHECK_PORT,)
    assert len(report.flagged) == 2
