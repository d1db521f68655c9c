# File: p4lens/core/http/dependencies.py

from fastapi import Request

from p4lens.core.shared_types import P4Session


def get_p4_session(request: Request) -> P4Session:
    """The app-wide P4Session built at start-up."""
    return request.app.state.p4_session


def get_orchestrator(request: Request):
    return request.app.state.orchestrator


def get_scan_cache(request: Request):
    return request.app.state.scan_cache
