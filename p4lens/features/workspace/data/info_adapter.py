import logging
from pathlib import Path
from typing import Dict, Optional

from p4lens.core.process.runner import ProcessRunner
from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from ..domain.interfaces import IWorkspaceInspector
from ..domain.models import ToolUnavailableError, WorkspaceInfo

logger = logging.getLogger(__name__)

INFO_FIELDS = {
    "Client name": "client_name",
    "Client root": "client_root",
    "User name": "user_name",
    "Server address": "server_address",
}


def parse_info_output(output: str) -> WorkspaceInfo:
    """
    Parses untagged `p4 info` output ("Key: value" per line).
    Only the first colon splits, so Windows roots like C:\\ws survive.
    """
    values: Dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        field_name = INFO_FIELDS.get(key.strip())
        if field_name and field_name not in values:
            values[field_name] = value.strip()
    return WorkspaceInfo(**values)


def parse_version_output(output: str) -> str:
    """Picks the `Rev.` line from `p4 -V`; falls back to the first non-empty line."""
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    for line in lines:
        if line.startswith("Rev."):
            return line
    return lines[0] if lines else ""


class P4InfoAdapter(IWorkspaceInspector):
    def __init__(self, session: P4Session, runner: Optional[ProcessRunner] = None):
        self.session = session
        self.runner = runner or ProcessRunner()

    def version(self) -> str:
        try:
            output = self.runner.run([self.session.binary, "-V"], Path.cwd())
        except ProcessFailure as e:
            raise ToolUnavailableError(
                "Perforce command-line client (p4) is not installed or not in PATH"
            ) from e

        banner = parse_version_output(output)
        if not banner:
            raise ToolUnavailableError(f"{self.session.binary} -V printed nothing")
        logger.info(f"P4 version: {banner}")
        return banner

    def info(self, working_directory: Optional[Path] = None) -> WorkspaceInfo:
        cwd = Path(working_directory) if working_directory else Path.cwd()
        output = self.runner.run(self.session.command("info"), cwd)
        info = parse_info_output(output)
        if info.client_root:
            logger.info(f"Detected client root from p4 info: {info.client_root}")
        else:
            logger.warning("p4 info reported no client root")
        return info
