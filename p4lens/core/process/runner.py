# File: p4lens/core/process/runner.py

import os
import logging
import subprocess
import tempfile
from contextlib import ExitStack
from pathlib import Path
from typing import Dict, List, Optional

from p4lens.core.config.settings import settings
from .types import ProcessFailure

logger = logging.getLogger(__name__)


class ProcessRunner:
    """
    Runs one external command per call and returns its stdout as text.

    stdout (and stdin, when given) is buffered in temp files. Every temp file is
    created and removed inside run(), whatever way the call ends.
    No timeout is applied; callers that need one must add it themselves.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = env

    def run(self,
            command: List[str],
            working_directory: Path,
            max_output_bytes: int = settings.MAX_OUTPUT_BYTES,
            stdin_text: Optional[str] = None) -> str:
        working_directory = Path(working_directory)
        if not working_directory.is_dir():
            raise FileNotFoundError(f"Working directory not found: {working_directory}")

        logger.info(f"Executing: {' '.join(command)} (cwd: {working_directory})")

        with ExitStack() as stack:
            stdout_file = stack.enter_context(self._scoped_temp_file(stack, "p4lens_out_"))

            stdin_file = None
            if stdin_text is not None:
                stdin_file = stack.enter_context(self._scoped_temp_file(stack, "p4lens_in_"))
                stdin_file.write(stdin_text.encode("utf-8"))
                stdin_file.flush()
                stdin_file.seek(0)

            try:
                completed = subprocess.run(
                    command,
                    cwd=str(working_directory),
                    stdin=stdin_file if stdin_file is not None else subprocess.DEVNULL,
                    stdout=stdout_file,
                    stderr=subprocess.PIPE,
                    env=self._build_env(),
                )
            except OSError as e:
                # Binary missing, not executable, etc. Nothing was written.
                logger.error(f"Could not start {command[0]}: {e}")
                raise ProcessFailure(command, None, reason=str(e)) from e

            output, overflowed = self._read_bounded(stdout_file, max_output_bytes)
            stderr = completed.stderr.decode("utf-8", errors="replace") if completed.stderr else ""

            if overflowed:
                logger.error(f"Output of {command[0]} exceeded {max_output_bytes} bytes")
                raise ProcessFailure(
                    command,
                    completed.returncode,
                    stderr=stderr,
                    partial_output=output,
                    reason=f"Output buffer exceeded ({max_output_bytes} bytes)",
                )

            if completed.returncode != 0:
                logger.error(f"Command failed ({completed.returncode}): {stderr.strip()}")
                raise ProcessFailure(command, completed.returncode, stderr=stderr, partial_output=output)

            return output

    def _build_env(self) -> Optional[Dict[str, str]]:
        if not self.env:
            return None
        env = dict(os.environ)
        env.update(self.env)
        return env

    @staticmethod
    def _scoped_temp_file(stack: ExitStack, prefix: str):
        """A named temp file that is closed, then deleted, when the stack unwinds."""
        handle = tempfile.NamedTemporaryFile(prefix=prefix, suffix=".txt", delete=False)
        stack.callback(_remove_quietly, handle.name)
        return handle

    @staticmethod
    def _read_bounded(handle, max_output_bytes: int):
        handle.flush()
        handle.seek(0)
        data = handle.read(max_output_bytes + 1)
        overflowed = len(data) > max_output_bytes
        if overflowed:
            data = data[:max_output_bytes]
        return data.decode("utf-8", errors="replace"), overflowed


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temp file {path}: {e}")
