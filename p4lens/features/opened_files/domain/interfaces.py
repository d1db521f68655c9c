from abc import ABC, abstractmethod
from pathlib import Path


class IOpenedFilesSource(ABC):
    """
    Contract for listing files opened on the current client.
    """

    @abstractmethod
    def list_opened(self, working_directory: Path) -> str:
        """
        Returns raw `p4 opened` output.
        An empty string means nothing is opened; other failures raise ProcessFailure.
        """
        pass
