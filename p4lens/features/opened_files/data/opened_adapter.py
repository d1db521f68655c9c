import re
import logging
from pathlib import Path
from typing import List, Optional

from p4lens.core.process.runner import ProcessRunner
from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from ..domain.interfaces import IOpenedFilesSource
from ..domain.models import CheckedOutFileRecord

logger = logging.getLogger(__name__)

NOT_OPENED = "file(s) not opened"

# //depot/a/b.c#5 - edit default change (text) by alice@ws-main *locked*
OPENED_FILE_LINE = re.compile(
    r"^(?P<depot>.+?)#(?P<rev>\w+)"
    r"\s+-\s+(?P<action>[\w/]+)"
    r"(?:\s+(?:(?P<default>default)\s+change|change\s+(?P<change>\d+)))?"
    r"(?:\s+\((?P<type>[^)]+)\))?"
    r"(?:\s+by\s+(?P<user>[^@\s]+)(?:@(?P<client>\S+))?)?"
)


def parse_opened_output(output: str) -> List[CheckedOutFileRecord]:
    """Lines without a `#rev` are skipped. Missing trailing parts stay empty."""
    if not output or not output.strip():
        return []

    records: List[CheckedOutFileRecord] = []
    for line in output.strip().splitlines():
        match = OPENED_FILE_LINE.match(line.strip())
        if not match:
            logger.debug(f"Line didn't match opened pattern: {line.strip()}")
            continue

        records.append(CheckedOutFileRecord(
            depot_path=match.group("depot"),
            revision=match.group("rev"),
            action=match.group("action").lower(),
            change=match.group("change") or "default",
            file_type=match.group("type") or "",
            user=match.group("user") or "",
            client=match.group("client") or "",
        ))

    return records


class P4OpenedAdapter(IOpenedFilesSource):
    def __init__(self, session: P4Session, runner: Optional[ProcessRunner] = None):
        self.session = session
        self.runner = runner or ProcessRunner()

    def list_opened(self, working_directory: Path) -> str:
        try:
            return self.runner.run(self.session.command("opened"), Path(working_directory))
        except ProcessFailure as e:
            if NOT_OPENED in e.stderr or NOT_OPENED in e.reason:
                logger.info("No files opened on this client")
                return ""
            raise
