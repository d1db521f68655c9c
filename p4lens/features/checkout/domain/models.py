from dataclasses import dataclass


class CheckoutError(RuntimeError):
    """p4 refused to open the file for edit."""

    def __init__(self, depot_path: str, message: str, details: str = ""):
        super().__init__(message)
        self.depot_path = depot_path
        self.details = details


@dataclass(frozen=True)
class CheckoutRequest:
    depot_path: str

    def __post_init__(self):
        if not self.depot_path or not self.depot_path.strip():
            raise ValueError("No depot file path provided")


@dataclass(frozen=True)
class CheckoutResult:
    depot_path: str
    message: str
    output: str = ""
