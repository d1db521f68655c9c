# File: p4lens/core/common/enums.py

from enum import Enum, unique


@unique
class ScanUnitStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@unique
class FileAction(str, Enum):
    """
    Actions p4 reports for a file.
    Parsers never validate against this list; p4 may add actions at any time.
    """
    EDIT = "edit"
    ADD = "add"
    DELETE = "delete"
    BRANCH = "branch"
    INTEGRATE = "integrate"
    MOVE_ADD = "move/add"
    MOVE_DELETE = "move/delete"
    IMPORT = "import"
    PURGE = "purge"
    ARCHIVE = "archive"

    @classmethod
    def from_token(cls, token: str):
        """Returns the matching member, or None for actions we don't know about."""
        try:
            return cls(token.lower())
        except ValueError:
            return None
