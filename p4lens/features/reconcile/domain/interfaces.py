from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .models import ParsedScan, ScanCacheEntry, ScanScope


class IScanOutputParser(ABC):
    """
    Turns raw reconcile text into records.
    """

    @abstractmethod
    def parse(self, raw_output: str, max_records: Optional[int] = None) -> ParsedScan:
        """
        Never raises. Lines that match no known shape are skipped.
        When max_records is positive only that many INPUT lines are looked at.
        """
        pass


class IReconcileScanner(ABC):
    """
    Contract for running the local-vs-depot comparison.
    Both methods raise ProcessFailure when the tool fails.
    """

    @abstractmethod
    def scan_workspace(self, workspace_root: Path) -> str:
        """Scans everything under the workspace root. Returns raw output."""
        pass

    @abstractmethod
    def scan_folder(self, workspace_root: Path, folder: Path) -> str:
        """Scans one folder recursively. Returns raw output."""
        pass


class IScanCacheStore(ABC):
    """
    Contract for reconcile result persistence.
    Implementations may raise their storage errors; the orchestrator decides how to degrade.
    """

    @abstractmethod
    def lookup(self, scope: ScanScope) -> Optional[ScanCacheEntry]:
        """Returns the entry for exactly this scope if it is younger than the TTL."""
        pass

    @abstractmethod
    def create_or_replace(self, scope: ScanScope, raw_output: str) -> ScanCacheEntry:
        """Whole-workspace write. Always resets created_at and processed folders."""
        pass

    @abstractmethod
    def append_folder(self,
                      scope: ScanScope,
                      folder: str,
                      folder_raw_output: str,
                      reset: bool = False) -> ScanCacheEntry:
        """
        Merges one folder's output into the scope's entry, creating it if absent.
        Keeps the original created_at of a live entry.
        With reset=True any existing entry is discarded first and created_at restarts.
        """
        pass

    @abstractmethod
    def invalidate(self, scope: ScanScope) -> None:
        """Drops the entry for this scope, if any."""
        pass
