from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .models import WorkspaceInfo


class IWorkspaceInspector(ABC):
    """
    Contract for discovering the p4 client and the workspace it points at.
    """

    @abstractmethod
    def version(self) -> str:
        """Returns the client version banner. Raises ToolUnavailableError."""
        pass

    @abstractmethod
    def info(self, working_directory: Optional[Path] = None) -> WorkspaceInfo:
        """Runs `p4 info` from the given directory. Raises ProcessFailure."""
        pass
