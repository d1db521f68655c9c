import re
import logging
from typing import List, Optional

from ..domain.interfaces import IScanOutputParser
from ..domain.models import ModifiedFileRecord, ParsedScan

logger = logging.getLogger(__name__)

# Shape 1: "reconcile edit //depot/path/file.ext#1" (optionally prefixed by one word)
RECONCILE_LINE = re.compile(r"^(?:\w+\s+)?reconcile\s+([\w/]+)\s+(.+?)(?:#\d+)?$", re.IGNORECASE)

# Shape 2: "//depot/path/file.ext#1 - opened for edit"
OPENED_LINE = re.compile(r"^(.+?)(?:#\d+)?\s+-\s+opened\s+for\s+([\w/]+)$", re.IGNORECASE)


class ReconcileOutputParser(IScanOutputParser):
    """
    Line-by-line parser for `p4 reconcile -n` output.

    max_records caps the number of INPUT lines inspected, not the number of
    records produced. Garbage lines near the top therefore count against the cap.
    """

    def parse(self, raw_output: str, max_records: Optional[int] = None) -> ParsedScan:
        if not raw_output or not raw_output.strip():
            return ParsedScan()

        lines = raw_output.strip().split("\n")
        limit_applied = False
        if max_records and max_records > 0 and len(lines) > max_records:
            lines = lines[:max_records]
            limit_applied = True

        records: List[ModifiedFileRecord] = []
        for line in lines:
            record = self._parse_line(line.strip())
            if record is not None:
                records.append(record)

        if not records:
            logger.info(f"No parseable reconcile lines in {len(lines)} lines of output")

        return ParsedScan(records=records, record_limit_applied=limit_applied)

    @staticmethod
    def _parse_line(line: str) -> Optional[ModifiedFileRecord]:
        match = RECONCILE_LINE.match(line)
        if match:
            action, depot_path = match.group(1), match.group(2)
        else:
            match = OPENED_LINE.match(line)
            if not match:
                return None
            depot_path, action = match.group(1), match.group(2)

        depot_path = depot_path.strip()
        if not depot_path or not action:
            return None

        return ModifiedFileRecord(depot_path=depot_path, status=action.lower())


def parse_scan_output(raw_output: str, max_records: Optional[int] = None) -> List[ModifiedFileRecord]:
    """Convenience wrapper returning just the records."""
    return ReconcileOutputParser().parse(raw_output, max_records).records
