import logging
from datetime import timedelta
from typing import Callable, Optional

from p4lens.core.config.settings import settings
from p4lens.core.database.connection import SessionLocal
from .sql_models import ScanCacheModel, utc_now
from ..domain.interfaces import IScanCacheStore
from ..domain.models import (
    ScanCacheEntry,
    ScanScope,
    as_utc,
    combine_folder_outputs,
    normalize_path,
)

logger = logging.getLogger(__name__)


class SqlScanCacheStore(IScanCacheStore):
    """
    SQLAlchemy-backed scan cache. One row per scope, one commit per operation.
    ttl and clock are injectable so expiry can be tested without sleeping.
    """

    def __init__(self,
                 session_factory=SessionLocal,
                 ttl: timedelta = timedelta(minutes=settings.SCAN_CACHE_TTL_MINUTES),
                 clock: Callable = utc_now):
        self.session_factory = session_factory
        self.ttl = ttl
        self.clock = clock

    def _is_expired(self, row: ScanCacheModel) -> bool:
        return self.clock() - as_utc(row.created_at) > self.ttl

    @staticmethod
    def _to_entry(scope: ScanScope, row: ScanCacheModel) -> ScanCacheEntry:
        return ScanCacheEntry(
            scope=scope,
            raw_output=row.raw_output or "",
            created_at=as_utc(row.created_at),
            processed_folders=list(row.processed_folders or []),
            folder_outputs=dict(row.folder_outputs or {}),
        )

    def lookup(self, scope: ScanScope) -> Optional[ScanCacheEntry]:
        with self.session_factory() as db:
            row = db.get(ScanCacheModel, scope.cache_key)
            if row is None:
                return None
            if self._is_expired(row):
                logger.info(f"Cache entry for {scope.workspace_root} expired")
                return None
            return self._to_entry(scope, row)

    def create_or_replace(self, scope: ScanScope, raw_output: str) -> ScanCacheEntry:
        with self.session_factory() as db:
            try:
                now = self.clock()
                row = db.get(ScanCacheModel, scope.cache_key)
                if row is None:
                    row = ScanCacheModel(scope_key=scope.cache_key)
                    db.add(row)

                row.workspace_root = scope.workspace_root
                row.included_folders = list(scope.folders)
                row.processed_folders = []
                row.folder_outputs = {}
                row.raw_output = raw_output
                row.created_at = now
                row.updated_at = now

                db.commit()
                db.refresh(row)
                logger.info(f"Cached {len(raw_output)} chars of scan output for {scope.workspace_root}")
                return self._to_entry(scope, row)
            except Exception as e:
                db.rollback()
                raise e

    def append_folder(self,
                      scope: ScanScope,
                      folder: str,
                      folder_raw_output: str,
                      reset: bool = False) -> ScanCacheEntry:
        with self.session_factory() as db:
            try:
                now = self.clock()
                row = db.get(ScanCacheModel, scope.cache_key)
                if row is not None and (reset or self._is_expired(row)):
                    logger.info(f"Discarding {'replaced' if reset else 'expired'} cache entry for {scope.workspace_root}")
                    db.delete(row)
                    db.flush()
                    row = None

                if row is None:
                    row = ScanCacheModel(
                        scope_key=scope.cache_key,
                        workspace_root=scope.workspace_root,
                        included_folders=list(scope.folders),
                        processed_folders=[],
                        folder_outputs={},
                        raw_output="",
                        created_at=now,
                    )
                    db.add(row)

                # JSON columns are replaced, never mutated in place
                key = normalize_path(folder)
                outputs = dict(row.folder_outputs or {})
                outputs[key] = folder_raw_output
                processed = [f for f in (row.processed_folders or []) if normalize_path(f) != key]
                processed.append(folder)

                row.folder_outputs = outputs
                row.processed_folders = processed
                row.raw_output = combine_folder_outputs(scope.folders, outputs)
                row.updated_at = now

                db.commit()
                db.refresh(row)
                return self._to_entry(scope, row)
            except Exception as e:
                db.rollback()
                raise e

    def invalidate(self, scope: ScanScope) -> None:
        with self.session_factory() as db:
            try:
                deleted = db.query(ScanCacheModel).filter(
                    ScanCacheModel.scope_key == scope.cache_key
                ).delete()
                db.commit()
                if deleted:
                    logger.info(f"Invalidated cache entry for {scope.workspace_root}")
            except Exception as e:
                db.rollback()
                raise e
