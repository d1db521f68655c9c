# File: p4lens/core/config/settings.py

import os
import shutil
from pathlib import Path


class Settings:
    # --- Paths ---
    # p4lens/core/config/settings.py -> p4lens/core/config -> p4lens/core -> p4lens -> ROOT
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent
    DATA_DIR: Path = Path(os.getenv("P4LENS_DATA_DIR", str(BASE_DIR / "data")))

    # --- Database ---
    @property
    def DATABASE_URL(self) -> str:
        # SQLite unless P4LENS_DATABASE_URL points elsewhere
        override = os.getenv("P4LENS_DATABASE_URL")
        if override:
            return override
        return f"sqlite:///{self.DATA_DIR / 'scan_cache.db'}"

    # --- External Tools ---
    # Auto-detect p4 or use env var
    P4_BINARY: str = os.getenv("P4_BINARY_PATH", shutil.which("p4") or "p4")

    # --- Connection defaults (empty = let p4 read its own environment / P4CONFIG) ---
    P4PORT: str = os.getenv("P4PORT", "")
    P4USER: str = os.getenv("P4USER", "")
    P4CLIENT: str = os.getenv("P4CLIENT", "")
    P4CHARSET: str = os.getenv("P4CHARSET", "")

    # --- Reconcile ---
    SCAN_CACHE_TTL_MINUTES: int = 60
    MAX_OUTPUT_BYTES: int = 100 * 1024 * 1024  # 100MB, same bound for every p4 call
    DEFAULT_MAX_RECORDS: int = 1000

    def ensure_dirs(self):
        """Creates necessary data directories if they don't exist."""
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)


settings = Settings()
