import time
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from p4lens.core.common.enums import ScanUnitStatus
from p4lens.core.common.locks import KeyedLocks
from p4lens.core.process.types import ProcessFailure
from p4lens.features.path_mapping.domain.interfaces import IPathMapper
from ..data.p4_adapter import describe_p4_error
from ..data.sql_models import utc_now
from ..domain.interfaces import IReconcileScanner, IScanCacheStore, IScanOutputParser
from ..domain.models import (
    WHOLE_WORKSPACE_UNIT,
    ReconcileRequest,
    ReconcileResponse,
    ScanCacheEntry,
    ScanFailedError,
    ScanLogEntry,
    ScanScope,
    combine_folder_outputs,
    normalize_path,
)

logger = logging.getLogger(__name__)


class ReconcileOrchestrator:
    """
    Coordinates the Cache, Scanner, Parser and Path Mapper for one request.

    Flow: CheckCache -> (Hit | Scan) -> Parse -> ResolvePaths -> Respond.
    Requests for the same scope are serialized, so a second caller waits and then
    finds the entry the first caller wrote.
    """

    def __init__(self,
                 cache: IScanCacheStore,
                 scanner: IReconcileScanner,
                 parser: IScanOutputParser,
                 mapper: IPathMapper,
                 locks: Optional[KeyedLocks] = None,
                 clock: Callable = utc_now):
        self.cache = cache
        self.scanner = scanner
        self.parser = parser
        self.mapper = mapper
        self.locks = locks if locks is not None else KeyedLocks()
        self.clock = clock

    def get_modified_files(self, request: ReconcileRequest) -> ReconcileResponse:
        scope = request.scope
        root = Path(scope.workspace_root)

        with self.locks.hold(scope.cache_key):
            if request.force_refresh:
                logger.info(f"Forced refresh for {scope.workspace_root}")
                self._safe_invalidate(scope)
                entry = None
            else:
                entry = self._safe_lookup(scope)

            scan_log: List[ScanLogEntry] = []
            if scope.is_whole_workspace:
                raw_output = entry.raw_output if entry is not None else self._scan_workspace(scope, root, scan_log)
            else:
                raw_output = self._scan_folders(scope, root, entry, scan_log, request.force_refresh)

        ran_units = any(e.status != ScanUnitStatus.SKIPPED for e in scan_log)
        served_from_cache = entry is not None and not ran_units

        # 1. Parse
        parsed = self.parser.parse(raw_output, request.max_records)

        # 2. Resolve local paths (one batch call)
        if parsed.records:
            resolved = self.mapper.resolve_paths([r.depot_path for r in parsed.records], root)
            for record in parsed.records:
                paths = resolved.get(record.depot_path)
                if paths is not None:
                    record.client_path = paths.client_path
                    record.local_path = paths.local_path

        # 3. Respond
        response = ReconcileResponse(
            files=parsed.records,
            served_from_cache=served_from_cache,
            cache_age_seconds=entry.age_seconds(self.clock()) if served_from_cache else None,
            record_limit_applied=parsed.record_limit_applied,
            scan_log=scan_log,
        )
        logger.info(
            f"Reconcile for {scope.workspace_root}: {len(response.files)} files "
            f"(cache={'hit' if served_from_cache else 'miss'}, units={len(scan_log)})"
        )
        return response

    # --- Scanning ---

    def _scan_workspace(self, scope: ScanScope, root: Path, scan_log: List[ScanLogEntry]) -> str:
        started = time.monotonic()
        try:
            output = self.scanner.scan_workspace(root)
        except ProcessFailure as e:
            elapsed = time.monotonic() - started
            message, details = describe_p4_error(e.reason)

            if not e.has_partial_output:
                scan_log.append(ScanLogEntry(WHOLE_WORKSPACE_UNIT, ScanUnitStatus.FAILED, elapsed, message))
                raise ScanFailedError(message, details, scan_log) from e

            # Partial results are shown but never cached
            logger.warning(f"Workspace scan failed, using partial output: {e.reason}")
            scan_log.append(ScanLogEntry(
                WHOLE_WORKSPACE_UNIT,
                ScanUnitStatus.FAILED,
                elapsed,
                f"{message} (partial output used)",
            ))
            return e.partial_output

        scan_log.append(ScanLogEntry(WHOLE_WORKSPACE_UNIT, ScanUnitStatus.COMPLETED, time.monotonic() - started))
        self._safe_write(lambda: self.cache.create_or_replace(scope, output))
        return output

    def _scan_folders(self,
                      scope: ScanScope,
                      root: Path,
                      entry: Optional[ScanCacheEntry],
                      scan_log: List[ScanLogEntry],
                      replace_entry: bool = False) -> str:
        outputs: Dict[str, str] = dict(entry.folder_outputs) if entry is not None else {}
        last_failure: Optional[ProcessFailure] = None
        # A forced refresh restarts the entry on its first successful write
        reset_pending = replace_entry

        for folder in scope.folders:
            if entry is not None and entry.has_processed(folder):
                continue

            folder_path = self._resolve_folder(root, folder)
            if not folder_path.is_dir():
                logger.warning(f"Folder doesn't exist, skipping: {folder_path}")
                scan_log.append(ScanLogEntry(folder, ScanUnitStatus.SKIPPED, 0.0, "Folder does not exist"))
                continue

            started = time.monotonic()
            try:
                output = self.scanner.scan_folder(root, folder_path)
            except ProcessFailure as e:
                last_failure = e
                message, _ = describe_p4_error(e.reason)
                logger.error(f"Reconcile failed for {folder}: {e.reason}")
                scan_log.append(ScanLogEntry(folder, ScanUnitStatus.FAILED, time.monotonic() - started, message))
                continue

            scan_log.append(ScanLogEntry(folder, ScanUnitStatus.COMPLETED, time.monotonic() - started))
            outputs[normalize_path(folder)] = output
            if self._safe_write(lambda: self.cache.append_folder(scope, folder, output, reset=reset_pending)):
                reset_pending = False

        completed = any(e.status == ScanUnitStatus.COMPLETED for e in scan_log)
        if last_failure is not None and not completed and not outputs:
            message, details = describe_p4_error(last_failure.reason)
            raise ScanFailedError(message, details, scan_log)

        return combine_folder_outputs(scope.folders, outputs)

    @staticmethod
    def _resolve_folder(root: Path, folder: str) -> Path:
        path = Path(folder)
        return path if path.is_absolute() else root / path

    # --- Cache access (storage errors degrade, never fail the request) ---

    def _safe_lookup(self, scope: ScanScope) -> Optional[ScanCacheEntry]:
        try:
            return self.cache.lookup(scope)
        except SQLAlchemyError as e:
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
            return None

    def _safe_invalidate(self, scope: ScanScope) -> None:
        try:
            self.cache.invalidate(scope)
        except SQLAlchemyError as e:
            logger.warning(f"Cache invalidation failed: {e}")

    def _safe_write(self, write) -> bool:
        try:
            write()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Cache write failed, continuing without caching: {e}")
            return False
