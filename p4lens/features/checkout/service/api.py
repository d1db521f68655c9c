from pathlib import Path
from typing import Optional

from p4lens.core.shared_types import P4Session
from ..data.edit_adapter import P4EditAdapter
from ..domain.interfaces import IFileOpener
from ..domain.models import CheckoutRequest, CheckoutResult


def checkout_file(session: P4Session,
                  depot_path: str,
                  workspace_root: Optional[str] = None,
                  opener: Optional[IFileOpener] = None) -> CheckoutResult:
    """
    Standalone API: opens one file for edit in the default changelist.
    Raises ValueError for an empty path and CheckoutError when p4 declines.
    """
    request = CheckoutRequest(depot_path=depot_path)
    cwd = Path(workspace_root) if workspace_root else Path.cwd()
    opener = opener or P4EditAdapter(session)
    return opener.open_for_edit(request, cwd)
