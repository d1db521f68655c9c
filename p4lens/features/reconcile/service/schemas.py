from typing import List, Optional

from p4lens.core.http.schemas import CamelModel
from ..domain.models import ModifiedFileRecord, ReconcileResponse, ScanLogEntry


class ModifiedFileOut(CamelModel):
    depot_path: str
    client_path: str = ""
    local_path: str = ""
    status: str

    @classmethod
    def from_record(cls, record: ModifiedFileRecord) -> "ModifiedFileOut":
        return cls(
            depot_path=record.depot_path,
            client_path=record.client_path,
            local_path=record.local_path,
            status=record.status,
        )


class ScanLogEntryOut(CamelModel):
    unit: str
    status: str
    duration_seconds: float
    detail: str = ""

    @classmethod
    def from_entry(cls, entry: ScanLogEntry) -> "ScanLogEntryOut":
        return cls(
            unit=entry.unit,
            status=entry.status.value,
            duration_seconds=round(entry.duration_seconds, 3),
            detail=entry.detail,
        )


class ModifiedFilesResponse(CamelModel):
    success: bool = True
    files: List[ModifiedFileOut]
    total_files: int
    from_cache: bool
    cache_age_seconds: Optional[int] = None
    limit_applied: bool
    scan_log: List[ScanLogEntryOut]

    @classmethod
    def from_domain(cls, response: ReconcileResponse) -> "ModifiedFilesResponse":
        return cls(
            files=[ModifiedFileOut.from_record(r) for r in response.files],
            total_files=len(response.files),
            from_cache=response.served_from_cache,
            cache_age_seconds=response.cache_age_seconds,
            limit_applied=response.record_limit_applied,
            scan_log=[ScanLogEntryOut.from_entry(e) for e in response.scan_log],
        )


class CacheInvalidatedResponse(CamelModel):
    success: bool = True
    scope_key: str
