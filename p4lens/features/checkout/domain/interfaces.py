from abc import ABC, abstractmethod
from pathlib import Path

from .models import CheckoutRequest, CheckoutResult


class IFileOpener(ABC):
    """
    Contract for opening a file for edit. The only write this app performs.
    """

    @abstractmethod
    def open_for_edit(self, request: CheckoutRequest, working_directory: Path) -> CheckoutResult:
        """Raises CheckoutError when p4 declines."""
        pass
