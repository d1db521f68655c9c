from dataclasses import dataclass


class ToolUnavailableError(RuntimeError):
    """The p4 binary cannot be started or refuses to report its version."""


@dataclass(frozen=True)
class WorkspaceInfo:
    """
    The subset of `p4 info` the rest of the app cares about.
    Fields p4 did not report are left empty.
    """
    client_name: str = ""
    client_root: str = ""
    user_name: str = ""
    server_address: str = ""

    @property
    def has_client(self) -> bool:
        # p4 reports "*unknown*" when no workspace is selected
        return bool(self.client_name) and self.client_name != "*unknown*"
