from pathlib import Path
from typing import Optional

from p4lens.core.shared_types import P4Session
from ..data.info_adapter import P4InfoAdapter
from ..domain.models import WorkspaceInfo


def check_tool(session: P4Session) -> str:
    """
    Standalone API: confirms the p4 binary runs.
    Returns the version banner or raises ToolUnavailableError.
    """
    return P4InfoAdapter(session).version()


def get_workspace_info(session: P4Session, working_directory: Optional[str] = None) -> WorkspaceInfo:
    """Standalone API: client name, root, user and server as reported by `p4 info`."""
    cwd = Path(working_directory) if working_directory else None
    return P4InfoAdapter(session).info(cwd)
