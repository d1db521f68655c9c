# File: p4lens/core/process/types.py

from typing import List, Optional


class ProcessFailure(RuntimeError):
    """
    Raised when an external command cannot be started, exits non-zero,
    or produces more output than the caller allowed.

    partial_output holds whatever stdout was captured before the failure
    (possibly empty). Callers may parse it instead of treating the run as a total loss.
    """

    def __init__(self,
                 command: List[str],
                 exit_code: Optional[int],
                 stderr: str = "",
                 partial_output: str = "",
                 reason: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        self.partial_output = partial_output
        self.reason = reason or (stderr.strip() if stderr else "") or f"exit code {exit_code}"
        super().__init__(f"{' '.join(command)} failed: {self.reason}")

    @property
    def has_partial_output(self) -> bool:
        return bool(self.partial_output.strip())
