# File: tests/conftest.py

import pytest
import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import sqlalchemy
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy_utils import database_exists, create_database

# 1. Add project root to path
sys.path.append(os.getcwd())

# 2. Keep the app's default SQLite file out of the repo
TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="p4lens_tests_"))
os.environ.setdefault("P4LENS_DATA_DIR", str(TEST_DATA_DIR))

from p4lens.core.database.connection import init_db
from p4lens.core.process.types import ProcessFailure
from p4lens.features.path_mapping.domain.interfaces import IPathMapper
from p4lens.features.path_mapping.domain.models import ResolvedPath
from p4lens.features.reconcile.data.repository import SqlScanCacheStore
from p4lens.features.reconcile.domain.interfaces import IReconcileScanner

# 3. Create Test Engine (isolated file, shared across threads like the app's)
TEST_DATABASE_URL = f"sqlite:///{TEST_DATA_DIR / 'test_scan_cache.db'}"
TEST_ENGINE = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE)


@pytest.fixture(scope="session", autouse=True)
def global_setup():
    """
    Runs once per test session.
    Ensures DB exists and tables are created.
    """
    if not database_exists(TEST_ENGINE.url):
        create_database(TEST_ENGINE.url)

    init_db(bind=TEST_ENGINE)

    yield


@pytest.fixture(scope="function", autouse=True)
def clean_db(global_setup):
    """
    Runs before EVERY test.
    Empties every table so cache entries never leak between tests.
    """
    with TEST_ENGINE.connect() as conn:
        trans = conn.begin()
        for table in sqlalchemy.inspect(TEST_ENGINE).get_table_names():
            conn.execute(text(f'DELETE FROM "{table}";'))
        trans.commit()

    yield


# --- Doubles ---

class FakeClock:
    """Callable clock; tests move time forward explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeScanner(IReconcileScanner):
    """
    Returns canned reconcile output and records every call.
    Folder outputs are keyed by folder name as the test wrote it.
    A ProcessFailure value is raised instead of returned.
    """

    def __init__(self, workspace_output="", folder_outputs=None):
        self.workspace_output = workspace_output
        self.folder_outputs = folder_outputs or {}
        self.calls = []

    def scan_workspace(self, workspace_root):
        self.calls.append(("workspace", str(workspace_root)))
        return self._answer(self.workspace_output)

    def scan_folder(self, workspace_root, folder):
        name = Path(folder).name
        self.calls.append(("folder", name))
        return self._answer(self.folder_outputs.get(name, ""))

    @staticmethod
    def _answer(value):
        if isinstance(value, ProcessFailure):
            raise value
        return value


class FakeMapper(IPathMapper):
    """Maps //depot/<x> to <root>/<x>; records each batch it receives."""

    def __init__(self, local_root="/ws", fail=False):
        self.local_root = local_root
        self.fail = fail
        self.batches = []

    def resolve_paths(self, depot_paths, workspace_root=None):
        self.batches.append(list(depot_paths))
        if self.fail:
            return {}
        resolved = {}
        for depot in depot_paths:
            if depot.startswith("//depot/"):
                rest = depot[len("//depot/"):]
                resolved[depot] = ResolvedPath(
                    client_path=f"//ws/{rest}",
                    local_path=f"{self.local_root}/{rest}",
                )
        return resolved


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def scan_store(clock):
    return SqlScanCacheStore(session_factory=TestingSessionLocal, clock=clock)


@pytest.fixture
def workspace(tmp_path):
    """A workspace root with two folders on disk: src and docs."""
    root = tmp_path / "ws"
    (root / "src").mkdir(parents=True)
    (root / "docs").mkdir()
    return root
