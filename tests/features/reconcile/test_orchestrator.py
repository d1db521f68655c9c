import threading
import time

import pytest
from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from p4lens.core.common.enums import ScanUnitStatus
from p4lens.core.process.types import ProcessFailure
from p4lens.features.reconcile.data.output_parser import ReconcileOutputParser
from p4lens.features.reconcile.domain.models import ReconcileRequest, ScanFailedError, ScanScope
from p4lens.features.reconcile.service.orchestrator import ReconcileOrchestrator
from conftest import FakeMapper, FakeScanner

SRC = "//depot/src/a.c#3 - opened for edit\n//depot/src/b.c#1 - opened for add\n"
DOCS = "//depot/docs/readme.md#2 - opened for edit\n"
WHOLE = SRC + DOCS


def build(scan_store, clock, scanner, mapper=None):
    return ReconcileOrchestrator(
        cache=scan_store,
        scanner=scanner,
        parser=ReconcileOutputParser(),
        mapper=mapper or FakeMapper(),
        clock=clock,
    )


def depot_paths(response):
    return [f.depot_path for f in response.files]


# --- Whole workspace ---

def test_whole_workspace_miss_then_hit(scan_store, clock, workspace):
    scanner = FakeScanner(workspace_output=WHOLE)
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace))

    first = orchestrator.get_modified_files(request)
    clock.advance(minutes=5)
    second = orchestrator.get_modified_files(request)

    assert scanner.calls == [("workspace", str(workspace))]
    assert first.served_from_cache is False and first.cache_age_seconds is None
    assert second.served_from_cache is True
    assert second.cache_age_seconds == 300
    assert depot_paths(first) == depot_paths(second) == [
        "//depot/src/a.c", "//depot/src/b.c", "//depot/docs/readme.md",
    ]
    assert first.scan_log[0].status == ScanUnitStatus.COMPLETED


def test_expired_entry_triggers_rescan(scan_store, clock, workspace):
    scanner = FakeScanner(workspace_output=WHOLE)
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace))

    orchestrator.get_modified_files(request)
    clock.advance(minutes=61)
    again = orchestrator.get_modified_files(request)

    assert len(scanner.calls) == 2
    assert again.served_from_cache is False


def test_forced_refresh_always_scans_and_rewrites(scan_store, clock, workspace):
    scanner = FakeScanner(workspace_output=SRC)
    orchestrator = build(scan_store, clock, scanner)
    orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    scanner.workspace_output = DOCS
    clock.advance(minutes=1)
    forced = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace), force_refresh=True))

    assert len(scanner.calls) == 2
    assert forced.served_from_cache is False
    assert depot_paths(forced) == ["//depot/docs/readme.md"]
    entry = scan_store.lookup(ScanScope(str(workspace)))
    assert entry.raw_output == DOCS
    assert entry.created_at == clock.now


def test_empty_output_is_no_differences(scan_store, clock, workspace):
    orchestrator = build(scan_store, clock, FakeScanner(workspace_output=""))
    response = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    assert response.files == []
    assert response.scan_log[0].status == ScanUnitStatus.COMPLETED
    assert scan_store.lookup(ScanScope(str(workspace))) is not None


def test_workspace_failure_without_output_raises(scan_store, clock, workspace):
    failure = ProcessFailure(["p4", "reconcile"], 1, stderr="Perforce password (P4PASSWD) invalid or unset.\nYour session has expired, please login again.")
    orchestrator = build(scan_store, clock, FakeScanner(workspace_output=failure))

    with pytest.raises(ScanFailedError) as exc:
        orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    assert str(exc.value) == "Not logged in to Perforce server"
    assert exc.value.scan_log[0].status == ScanUnitStatus.FAILED
    assert scan_store.lookup(ScanScope(str(workspace))) is None


def test_workspace_partial_output_is_used_but_not_cached(scan_store, clock, workspace):
    failure = ProcessFailure(["p4", "reconcile"], None, partial_output=SRC, reason="Output buffer exceeded (100 bytes)")
    orchestrator = build(scan_store, clock, FakeScanner(workspace_output=failure))

    response = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    assert depot_paths(response) == ["//depot/src/a.c", "//depot/src/b.c"]
    assert response.scan_log[0].status == ScanUnitStatus.FAILED
    assert "partial output" in response.scan_log[0].detail
    assert scan_store.lookup(ScanScope(str(workspace))) is None


# --- Folder scopes ---

def test_folders_scanned_in_order_and_merged(scan_store, clock, workspace):
    scanner = FakeScanner(folder_outputs={"src": SRC, "docs": DOCS})
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace), included_folders=("docs", "src"))

    response = orchestrator.get_modified_files(request)

    assert scanner.calls == [("folder", "docs"), ("folder", "src")]
    assert depot_paths(response) == ["//depot/docs/readme.md", "//depot/src/a.c", "//depot/src/b.c"]
    entry = scan_store.lookup(request.scope)
    assert [f.lower() for f in entry.processed_folders] == ["docs", "src"]


def test_incremental_merge_matches_fresh_scan(scan_store, clock, workspace):
    scanner = FakeScanner(folder_outputs={"src": SRC, "docs": DOCS})
    orchestrator = build(scan_store, clock, scanner)
    scope_request = ReconcileRequest(workspace_root=str(workspace), included_folders=("src", "docs"))

    # Seed the entry with one folder, as an interrupted earlier run would leave it
    scan_store.append_folder(scope_request.scope, "src", SRC)
    seeded_at = clock.now
    clock.advance(minutes=2)

    merged = orchestrator.get_modified_files(scope_request)
    assert scanner.calls == [("folder", "docs")]
    assert merged.served_from_cache is False
    assert scan_store.lookup(scope_request.scope).created_at == seeded_at

    fresh = orchestrator.get_modified_files(
        ReconcileRequest(workspace_root=str(workspace), included_folders=("src", "docs"), force_refresh=True)
    )
    assert depot_paths(merged) == depot_paths(fresh)
    assert [f.status for f in merged.files] == [f.status for f in fresh.files]

    assert scan_store.lookup(scope_request.scope).created_at == clock.now


def test_fully_cached_folder_scope_is_a_hit(scan_store, clock, workspace):
    scanner = FakeScanner(folder_outputs={"src": SRC, "docs": DOCS})
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace), included_folders=("src", "docs"))

    orchestrator.get_modified_files(request)
    again = orchestrator.get_modified_files(
        ReconcileRequest(workspace_root=str(workspace), included_folders=("DOCS", "src/"))
    )

    assert len(scanner.calls) == 2
    assert again.served_from_cache is True
    # Same scope, so no scan; output follows this caller's folder order
    assert depot_paths(again) == ["//depot/docs/readme.md", "//depot/src/a.c", "//depot/src/b.c"]


def test_missing_folder_skipped_and_siblings_scanned(scan_store, clock, workspace):
    scanner = FakeScanner(folder_outputs={"src": SRC})
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace), included_folders=("ghost", "src"))

    response = orchestrator.get_modified_files(request)

    assert scanner.calls == [("folder", "src")]
    assert response.skipped_units == ["ghost"]
    assert [(e.unit, e.status) for e in response.scan_log] == [
        ("ghost", ScanUnitStatus.SKIPPED),
        ("src", ScanUnitStatus.COMPLETED),
    ]
    assert depot_paths(response) == ["//depot/src/a.c", "//depot/src/b.c"]
    assert not scan_store.lookup(request.scope).has_processed("ghost")


def test_only_missing_folders_is_empty_success(scan_store, clock, workspace):
    scanner = FakeScanner()
    response = build(scan_store, clock, scanner).get_modified_files(
        ReconcileRequest(workspace_root=str(workspace), included_folders=("ghost",))
    )
    assert scanner.calls == []
    assert response.files == []
    assert response.skipped_units == ["ghost"]


def test_failed_folder_does_not_abort_siblings(scan_store, clock, workspace):
    failure = ProcessFailure(["p4", "reconcile"], 1, stderr="//ws/docs/... - file(s) not in client view.")
    scanner = FakeScanner(folder_outputs={"docs": failure, "src": SRC})
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace), included_folders=("docs", "src"))

    response = orchestrator.get_modified_files(request)

    assert response.failed_units == ["docs"]
    assert depot_paths(response) == ["//depot/src/a.c", "//depot/src/b.c"]
    entry = scan_store.lookup(request.scope)
    assert entry.has_processed("src") and not entry.has_processed("docs")

    # The failed folder is retried next time; the good one is not
    scanner.folder_outputs["docs"] = DOCS
    retried = orchestrator.get_modified_files(request)
    assert scanner.calls[-1] == ("folder", "docs")
    assert depot_paths(retried) == ["//depot/docs/readme.md", "//depot/src/a.c", "//depot/src/b.c"]


def test_all_folders_failing_raises(scan_store, clock, workspace):
    failure = ProcessFailure(["p4", "reconcile"], 1, stderr="Connect to server failed; check $P4PORT.")
    scanner = FakeScanner(folder_outputs={"docs": failure, "src": failure})

    with pytest.raises(ScanFailedError) as exc:
        build(scan_store, clock, scanner).get_modified_files(
            ReconcileRequest(workspace_root=str(workspace), included_folders=("docs", "src"))
        )

    assert str(exc.value) == "Cannot reach the Perforce server"
    assert len(exc.value.scan_log) == 2


# --- Parsing, mapping, degradation ---

def test_record_limit_flag(scan_store, clock, workspace):
    orchestrator = build(scan_store, clock, FakeScanner(workspace_output=WHOLE))
    response = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace), max_records=2))

    assert response.record_limit_applied is True
    assert len(response.files) == 2

    # The cached raw output is not truncated
    full = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace), max_records=10))
    assert full.served_from_cache is True
    assert len(full.files) == 3
    assert full.record_limit_applied is False


def test_paths_resolved_in_one_batch(scan_store, clock, workspace):
    mapper = FakeMapper(local_root="/home/ann/ws")
    orchestrator = build(scan_store, clock, FakeScanner(workspace_output=WHOLE), mapper)

    response = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    assert len(mapper.batches) == 1
    assert mapper.batches[0] == depot_paths(response)
    assert response.files[0].client_path == "//ws/src/a.c"
    assert response.files[0].local_path == "/home/ann/ws/src/a.c"


def test_mapping_failure_keeps_records(scan_store, clock, workspace):
    orchestrator = build(scan_store, clock, FakeScanner(workspace_output=WHOLE), FakeMapper(fail=True))
    response = orchestrator.get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    assert len(response.files) == 3
    assert all(f.local_path == "" and f.client_path == "" for f in response.files)


def test_no_mapping_call_without_records(scan_store, clock, workspace):
    mapper = FakeMapper()
    build(scan_store, clock, FakeScanner(workspace_output=""), mapper).get_modified_files(
        ReconcileRequest(workspace_root=str(workspace))
    )
    assert mapper.batches == []


def test_cache_errors_degrade_to_scanning(clock, workspace):
    broken = Mock()
    broken.lookup.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
    broken.create_or_replace.side_effect = OperationalError("INSERT", {}, Exception("database is locked"))
    scanner = FakeScanner(workspace_output=SRC)

    response = build(broken, clock, scanner).get_modified_files(ReconcileRequest(workspace_root=str(workspace)))

    assert len(scanner.calls) == 1
    assert response.served_from_cache is False
    assert depot_paths(response) == ["//depot/src/a.c", "//depot/src/b.c"]


def test_forced_refresh_replaces_entry_when_invalidate_fails(scan_store, clock, workspace):
    scanner = FakeScanner(folder_outputs={"src": SRC, "docs": DOCS})
    store = Mock(wraps=scan_store)
    orchestrator = build(store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace), included_folders=("src", "docs"))
    orchestrator.get_modified_files(request)
    created = scan_store.lookup(request.scope).created_at

    store.invalidate.side_effect = OperationalError("DELETE", {}, Exception("database is locked"))
    clock.advance(minutes=30)
    scanner.folder_outputs["docs"] = ProcessFailure(["p4", "reconcile"], 1, stderr="Connect to server failed")

    forced = orchestrator.get_modified_files(
        ReconcileRequest(workspace_root=str(workspace), included_folders=("src", "docs"), force_refresh=True)
    )

    assert forced.failed_units == ["docs"]
    assert depot_paths(forced) == ["//depot/src/a.c", "//depot/src/b.c"]
    entry = scan_store.lookup(request.scope)
    assert entry.created_at != created
    assert entry.created_at == clock.now
    assert not entry.has_processed("docs")
    assert DOCS not in entry.raw_output

    # The folder that failed is scanned again rather than served stale
    scanner.folder_outputs["docs"] = DOCS
    again = orchestrator.get_modified_files(request)
    assert scanner.calls[-1] == ("folder", "docs")
    assert again.served_from_cache is False


# --- Concurrency ---

class SlowScanner(FakeScanner):
    """Holds each workspace scan open long enough for a second caller to arrive."""

    def scan_workspace(self, workspace_root):
        time.sleep(0.1)
        return super().scan_workspace(workspace_root)


def test_concurrent_requests_for_one_scope_scan_once(scan_store, clock, workspace):
    scanner = SlowScanner(workspace_output=WHOLE)
    orchestrator = build(scan_store, clock, scanner)
    request = ReconcileRequest(workspace_root=str(workspace))
    responses = []

    def worker():
        responses.append(orchestrator.get_modified_files(request))

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(scanner.calls) == 1
    assert sorted(r.served_from_cache for r in responses) == [False, True]
    assert depot_paths(responses[0]) == depot_paths(responses[1])
