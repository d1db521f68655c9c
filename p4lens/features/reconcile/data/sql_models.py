from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, JSON
from p4lens.core.database.base import Base


def utc_now():
    return datetime.now(timezone.utc)


class ScanCacheModel(Base):
    """
    One cached reconcile result per normalized scan scope.

    Structure: [SHA-256 of scope] --> raw output + per-folder segments
    folder_outputs is keyed by normalized folder so re-scanning a folder replaces its segment.
    """
    __tablename__ = "scan_cache_entries"

    scope_key = Column(String(64), primary_key=True)

    # Original spelling, kept for diagnostics and for rebuilding the scope
    workspace_root = Column(String, nullable=False)
    included_folders = Column(JSON, default=list)

    processed_folders = Column(JSON, default=list)
    folder_outputs = Column(JSON, default=dict)
    raw_output = Column(Text, nullable=False, default="")

    # TTL clock. Appending a folder never moves it.
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
