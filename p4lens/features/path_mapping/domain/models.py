from dataclasses import dataclass


@dataclass(frozen=True)
class PathMapping:
    """
    One mapping root reported by `p4 where`.
    Transient: built per request, applied to that request's files, then dropped.
    """
    depot_prefix: str
    client_prefix: str
    local_prefix: str

    def __post_init__(self):
        if not self.depot_prefix:
            raise ValueError("Depot prefix cannot be empty.")


@dataclass(frozen=True)
class ResolvedPath:
    client_path: str = ""
    local_path: str = ""
