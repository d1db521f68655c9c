import logging
from pathlib import Path
from typing import List, Optional, Tuple

from p4lens.core.process.runner import ProcessRunner
from p4lens.core.process.types import ProcessFailure
from p4lens.core.shared_types import P4Session
from ..domain.interfaces import IFileOpener
from ..domain.models import CheckoutError, CheckoutRequest, CheckoutResult

logger = logging.getLogger(__name__)


def split_script_output(output: str) -> List[Tuple[str, str]]:
    """
    Splits `p4 -s` output into (level, message) pairs.
    -s routes warnings and errors to stdout, each line prefixed with its level.
    """
    pairs: List[Tuple[str, str]] = []
    for line in output.splitlines():
        level, sep, message = line.partition(":")
        if sep and level in ("info", "info1", "info2", "text", "warning", "error", "exit"):
            pairs.append((level, message.strip()))
    return pairs


def interpret_edit_output(depot_path: str, output: str) -> CheckoutResult:
    pairs = split_script_output(output)
    problems = [msg for level, msg in pairs if level in ("warning", "error")]
    text = "\n".join(msg for level, msg in pairs if level != "exit") or output.strip()

    for problem in problems:
        if "not on client" in problem:
            raise CheckoutError(depot_path, f'File "{depot_path}" is not mapped in your workspace', problem)
        if "already opened for edit" in problem or "currently opened for edit" in problem:
            raise CheckoutError(depot_path, f'File "{depot_path}" is already open for edit', problem)
    if problems:
        raise CheckoutError(depot_path, "Failed to checkout file", "\n".join(problems))

    return CheckoutResult(
        depot_path=depot_path,
        message=f'File "{depot_path}" checked out for edit',
        output=text,
    )


class P4EditAdapter(IFileOpener):
    def __init__(self, session: P4Session, runner: Optional[ProcessRunner] = None):
        self.session = session
        self.runner = runner or ProcessRunner()

    def open_for_edit(self, request: CheckoutRequest, working_directory: Path) -> CheckoutResult:
        depot_path = request.depot_path.strip()
        cmd = self.session.command("-s", "edit", depot_path)

        try:
            output = self.runner.run(cmd, Path(working_directory))
        except ProcessFailure as e:
            # -s exits non-zero on errors but the reason is still on stdout
            output = e.partial_output
            if not split_script_output(output):
                raise CheckoutError(depot_path, "Failed to checkout file", e.stderr.strip() or e.reason) from e

        result = interpret_edit_output(depot_path, output)
        logger.info(result.message)
        return result
