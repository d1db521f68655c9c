from dataclasses import dataclass
from typing import Optional

from p4lens.core.common.enums import FileAction


@dataclass
class CheckedOutFileRecord:
    """
    One file currently opened in a pending changelist.
    change is "default" or the changelist number as text.
    """
    depot_path: str
    revision: str = ""
    action: str = ""
    change: str = "default"
    file_type: str = ""
    user: str = ""
    client: str = ""
    client_path: str = ""
    local_path: str = ""

    def __post_init__(self):
        if not self.depot_path:
            raise ValueError("Depot path cannot be empty.")

    @property
    def file_action(self) -> Optional[FileAction]:
        return FileAction.from_token(self.action)

    @property
    def in_default_change(self) -> bool:
        return self.change == "default"
