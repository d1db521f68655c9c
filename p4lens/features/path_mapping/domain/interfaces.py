from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from .models import ResolvedPath


class IPathMapper(ABC):
    """
    Contract for translating depot paths into client and local paths.
    """

    @abstractmethod
    def resolve_paths(self, depot_paths: List[str], workspace_root: Optional[Path] = None) -> Dict[str, ResolvedPath]:
        """
        Resolves a whole batch with a single call to the underlying tool.

        Args:
            depot_paths: Depot paths in caller order.
            workspace_root: Directory the tool runs in (selects the workspace via P4CONFIG).

        Returns:
            A partial map. Paths that could not be resolved are simply absent.
            Never raises for tool failures; an empty map is returned instead.
        """
        pass
