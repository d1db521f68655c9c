import os
import logging
from pathlib import Path
from typing import Dict, List, Optional

from p4lens.core.config.settings import settings
from p4lens.core.process.runner import ProcessRunner
from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from ..domain.interfaces import IPathMapper
from ..domain.models import PathMapping, ResolvedPath

logger = logging.getLogger(__name__)

TAG_PREFIX = "... "
WILDCARD = "..."


def parse_where_output(output: str) -> List[PathMapping]:
    """
    Parses `p4 -ztag where` output into an ordered prefix table.

    Each block starts with `... depotFile`, followed by `... clientFile` and `... path`.
    Blocks flagged `... unmap` are exclusions and are dropped. A trailing `...`
    wildcard is stripped so directory mappings behave as prefixes.
    When the same depot prefix is reported twice, the first block wins.
    """
    mappings: List[PathMapping] = []
    seen = set()

    for block in _split_blocks(output):
        if "unmap" in block:
            continue

        depot = _strip_wildcard(block.get("depotFile", ""))
        if not depot or depot in seen:
            continue

        client = _strip_wildcard(block.get("clientFile", ""))
        # Fallback to client path if local not reported
        local = _strip_wildcard(block.get("path", "")) or client

        seen.add(depot)
        mappings.append(PathMapping(depot_prefix=depot, client_prefix=client, local_prefix=local))

    return mappings


def resolve_against(depot_path: str, mappings: List[PathMapping]) -> Optional[ResolvedPath]:
    """
    Longest matching depot prefix wins; on equal length the earlier mapping wins.
    The prefix is swapped and the remainder of the path is kept as-is.
    """
    best: Optional[PathMapping] = None
    for mapping in mappings:
        if not depot_path.startswith(mapping.depot_prefix):
            continue
        if best is None or len(mapping.depot_prefix) > len(best.depot_prefix):
            best = mapping

    if best is None:
        return None

    remainder = depot_path[len(best.depot_prefix):]
    client_path = best.client_prefix + remainder if best.client_prefix else ""
    local_path = to_native_separators(best.local_prefix + remainder) if best.local_prefix else ""
    return ResolvedPath(client_path=client_path, local_path=local_path)


def to_native_separators(path: str) -> str:
    return path.replace("\\", os.sep).replace("/", os.sep)


def _split_blocks(output: str) -> List[Dict[str, str]]:
    blocks: List[Dict[str, str]] = []
    current: Optional[Dict[str, str]] = None

    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line.startswith(TAG_PREFIX):
            continue

        key, _, value = line[len(TAG_PREFIX):].partition(" ")
        if key == "depotFile":
            current = {}
            blocks.append(current)
        if current is None:
            # Tag lines before the first depotFile carry nothing we can use
            continue
        current[key] = value.strip()

    return blocks


def _strip_wildcard(value: str) -> str:
    if value.endswith(WILDCARD):
        return value[:-len(WILDCARD)]
    return value


class P4WherePathMapper(IPathMapper):
    """
    Concrete implementation of IPathMapper using a single `p4 -ztag -x - where` call.
    The depot paths are fed on stdin so the call count stays at one regardless of batch size.
    """

    def __init__(self, session: P4Session, runner: Optional[ProcessRunner] = None):
        self.session = session
        self.runner = runner or ProcessRunner()

    def resolve_paths(self, depot_paths: List[str], workspace_root: Optional[Path] = None) -> Dict[str, ResolvedPath]:
        if not depot_paths:
            return {}

        cmd = self.session.command("where", tagged=True, stdin_args=True)
        cwd = Path(workspace_root) if workspace_root else Path.cwd()

        try:
            output = self.runner.run(
                cmd,
                cwd,
                max_output_bytes=settings.MAX_OUTPUT_BYTES,
                stdin_text="\n".join(depot_paths) + "\n",
            )
        except ProcessFailure as e:
            # p4 where exits non-zero when *some* files are outside the view,
            # but still reports the ones it could map.
            if not e.has_partial_output:
                logger.warning(f"Path mapping failed, returning unmapped files: {e.reason}")
                return {}
            logger.warning(f"Path mapping partially failed ({e.reason}); using partial output")
            output = e.partial_output
        except FileNotFoundError as e:
            logger.warning(f"Path mapping skipped: {e}")
            return {}

        mappings = parse_where_output(output)
        resolved: Dict[str, ResolvedPath] = {}
        for depot_path in depot_paths:
            match = resolve_against(depot_path, mappings)
            if match is not None:
                resolved[depot_path] = match

        logger.info(f"Mapped {len(resolved)} of {len(depot_paths)} depot paths")
        return resolved
