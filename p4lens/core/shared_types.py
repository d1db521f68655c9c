from dataclasses import dataclass
from typing import List, Optional

from p4lens.core.config.settings import settings


@dataclass(frozen=True)
class P4Session:
    """
    Value Object describing how to reach the Perforce server.
    Constructed explicitly by whoever owns the request (the HTTP app, a test, a script)
    and passed to every adapter. Empty fields are left to p4's own environment.
    """
    binary: str = "p4"
    port: str = ""
    user: str = ""
    client: str = ""
    charset: str = ""

    def __post_init__(self):
        if not self.binary.strip():
            raise ValueError("p4 binary path cannot be empty.")

    @classmethod
    def from_settings(cls) -> "P4Session":
        return cls(
            binary=settings.P4_BINARY,
            port=settings.P4PORT,
            user=settings.P4USER,
            client=settings.P4CLIENT,
            charset=settings.P4CHARSET,
        )

    def command(self, *args: str, tagged: bool = False, stdin_args: bool = False) -> List[str]:
        """
        Builds the argv for a p4 call.
        Global options must come before the subcommand, so they are assembled here.
        """
        cmd = [self.binary]
        if self.port:
            cmd += ["-p", self.port]
        if self.user:
            cmd += ["-u", self.user]
        if self.client:
            cmd += ["-c", self.client]
        if self.charset:
            cmd += ["-C", self.charset]
        if tagged:
            cmd.append("-ztag")
        if stdin_args:
            # -x - : read extra arguments (one per line) from stdin
            cmd += ["-x", "-"]
        cmd.extend(args)
        return cmd

    def describe(self) -> Optional[str]:
        """Short label for logs, e.g. 'alice@ws-main on ssl:p4:1666'."""
        if not (self.user or self.client or self.port):
            return None
        who = self.user or "?"
        where = self.client or "?"
        return f"{who}@{where} on {self.port or 'default port'}"
