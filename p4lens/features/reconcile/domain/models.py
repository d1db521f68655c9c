import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from p4lens.core.common.enums import FileAction, ScanUnitStatus
from p4lens.core.config.settings import settings

WHOLE_WORKSPACE_UNIT = "(workspace)"


class WorkspaceRootError(ValueError):
    """The workspace root is empty or does not resolve to a directory."""


class ScanFailedError(RuntimeError):
    """
    No scan unit could run at all. Partial failures never raise this;
    they are reported in the scan log instead.
    """

    def __init__(self, message: str, details: str = "", scan_log: Optional[List["ScanLogEntry"]] = None):
        super().__init__(message)
        self.details = details
        self.scan_log = scan_log or []


def normalize_path(path: str) -> str:
    """Case-insensitive, separator-agnostic form used for scope identity."""
    cleaned = path.strip().replace("\\", "/")
    normalized = cleaned.rstrip("/").lower()
    # Filesystem root keeps its separator
    return normalized or ("/" if cleaned else "")


@dataclass(frozen=True, eq=False)
class ScanScope:
    """
    What a cached reconcile result covers: a workspace root plus an ordered set
    of folder restrictions (empty = whole workspace).

    Equality and hashing use the normalized root and the SET of normalized folders,
    so [A, B] and [b, a/] are the same scope. Iteration order stays as given.
    """
    workspace_root: str
    folders: Tuple[str, ...] = ()

    def __post_init__(self):
        # Ordered de-duplication on the normalized form; first spelling wins
        unique: List[str] = []
        seen = set()
        for folder in self.folders:
            cleaned = folder.strip()
            key = normalize_path(cleaned)
            if not key or key in seen:
                continue
            seen.add(key)
            unique.append(cleaned)
        object.__setattr__(self, "folders", tuple(unique))

    @property
    def is_whole_workspace(self) -> bool:
        return not self.folders

    @property
    def normalized_root(self) -> str:
        return normalize_path(self.workspace_root)

    @property
    def normalized_folders(self) -> Tuple[str, ...]:
        return tuple(sorted(normalize_path(f) for f in self.folders))

    @property
    def cache_key(self) -> str:
        """Stable SHA-256 of the normalized scope; folder order does not matter."""
        payload = json.dumps(
            {"root": self.normalized_root, "folders": list(self.normalized_folders)},
            sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def __eq__(self, other):
        if not isinstance(other, ScanScope):
            return NotImplemented
        return self.cache_key == other.cache_key

    def __hash__(self):
        return hash(self.cache_key)


def combine_folder_outputs(folders: Iterable[str], outputs: Dict[str, str]) -> str:
    """
    Concatenates per-folder raw outputs in the given folder order.
    `outputs` is keyed by normalized folder. Blank segments are dropped, so a fresh
    scan and a cache rebuild produce byte-identical text.
    """
    parts: List[str] = []
    for folder in folders:
        segment = outputs.get(normalize_path(folder), "")
        if segment.strip():
            parts.append(segment.rstrip("\n"))
    return "\n".join(parts)


@dataclass
class ScanCacheEntry:
    """
    A cached reconcile result for one scope.
    folder_outputs is keyed by normalized folder; raw_output is always the ordered
    concatenation for folder scopes, or the single workspace output otherwise.
    """
    scope: ScanScope
    raw_output: str
    created_at: datetime
    processed_folders: List[str] = field(default_factory=list)
    folder_outputs: Dict[str, str] = field(default_factory=dict)

    def has_processed(self, folder: str) -> bool:
        key = normalize_path(folder)
        return any(normalize_path(f) == key for f in self.processed_folders)

    def age_seconds(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(0, int((now - as_utc(self.created_at)).total_seconds()))


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class ModifiedFileRecord:
    """
    One file reported by reconcile. client_path/local_path stay empty
    when the mapper could not resolve them; the record is still valid.
    """
    depot_path: str
    status: str
    client_path: str = ""
    local_path: str = ""

    def __post_init__(self):
        if not self.depot_path:
            raise ValueError("Depot path cannot be empty.")

    @property
    def action(self) -> Optional[FileAction]:
        return FileAction.from_token(self.status)


@dataclass
class ParsedScan:
    records: List[ModifiedFileRecord] = field(default_factory=list)
    record_limit_applied: bool = False


@dataclass
class ScanLogEntry:
    unit: str
    status: ScanUnitStatus
    duration_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=True)
class ReconcileRequest:
    """
    User intent: list files that differ from the depot without being opened.
    """
    workspace_root: str
    included_folders: Tuple[str, ...] = ()
    max_records: int = settings.DEFAULT_MAX_RECORDS
    force_refresh: bool = False

    def __post_init__(self):
        # Validate before anything touches p4
        if not self.workspace_root or not self.workspace_root.strip():
            raise WorkspaceRootError("No Perforce client root specified.")
        if not Path(self.workspace_root.strip()).is_dir():
            raise WorkspaceRootError(f"Client root is not an existing directory: {self.workspace_root}")
        object.__setattr__(self, "included_folders", tuple(self.included_folders))

    @property
    def scope(self) -> ScanScope:
        return ScanScope(self.workspace_root.strip(), self.included_folders)


@dataclass
class ReconcileResponse:
    files: List[ModifiedFileRecord] = field(default_factory=list)
    served_from_cache: bool = False
    cache_age_seconds: Optional[int] = None
    record_limit_applied: bool = False
    scan_log: List[ScanLogEntry] = field(default_factory=list)

    @property
    def failed_units(self) -> List[str]:
        return [e.unit for e in self.scan_log if e.status == ScanUnitStatus.FAILED]

    @property
    def skipped_units(self) -> List[str]:
        return [e.unit for e in self.scan_log if e.status == ScanUnitStatus.SKIPPED]
