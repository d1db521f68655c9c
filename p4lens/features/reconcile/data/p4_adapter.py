import os
import re
import logging
from pathlib import Path
from typing import Optional, Tuple

from p4lens.core.config.settings import settings
from p4lens.core.process.runner import ProcessRunner
from p4lens.core.shared_types import P4Session
from ..domain.interfaces import IReconcileScanner

logger = logging.getLogger(__name__)

CLIENT_ROOT_IN_ERROR = re.compile(r"client's root '([^']+)'")


class P4ReconcileAdapter(IReconcileScanner):
    """
    Concrete implementation of IReconcileScanner using `p4 reconcile -n` (preview only,
    nothing is opened). ProcessFailure from the runner propagates to the caller.
    """

    def __init__(self, session: P4Session, runner: Optional[ProcessRunner] = None):
        self.session = session
        self.runner = runner or ProcessRunner()

    def scan_workspace(self, workspace_root: Path) -> str:
        # -m: check modification time before digest
        # -n: preview
        cmd = self.session.command("reconcile", "-m", "-n", "...")
        return self.runner.run(cmd, Path(workspace_root), max_output_bytes=settings.MAX_OUTPUT_BYTES)

    def scan_folder(self, workspace_root: Path, folder: Path) -> str:
        target = os.path.join(str(folder).rstrip("/\\"), "...")
        cmd = self.session.command("reconcile", "-n", target)
        return self.runner.run(cmd, Path(workspace_root), max_output_bytes=settings.MAX_OUTPUT_BYTES)


def describe_p4_error(error_text: str) -> Tuple[str, str]:
    """
    Maps raw p4 error text to (user-facing message, details).
    Unrecognised errors keep the raw text as details.
    """
    if "not under client's root" in error_text:
        details = ""
        match = CLIENT_ROOT_IN_ERROR.search(error_text)
        if match:
            details = f"Your Perforce workspace is located at: {match.group(1)}"
        return "Current directory is not in your Perforce workspace", details or error_text
    if "file(s) not in client view" in error_text:
        return "No files in current directory are mapped in your Perforce workspace", error_text
    if "not logged in" in error_text or "session has expired" in error_text.lower():
        return "Not logged in to Perforce server", error_text
    if "Output buffer exceeded" in error_text:
        return "Output buffer exceeded", "Your workspace contains too many files. Try restricting the scan to specific folders."
    if "Connect to server failed" in error_text:
        return "Cannot reach the Perforce server", error_text
    return "Failed to execute Perforce command", error_text
