# File: p4lens/main.py

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from p4lens.core.common.locks import KeyedLocks
from p4lens.core.database.connection import SessionLocal, init_db
from p4lens.core.shared_types import P4Session
from p4lens.features.checkout.service.router import router as checkout_router
from p4lens.features.opened_files.service.router import router as opened_files_router
from p4lens.features.path_mapping.data.where_adapter import P4WherePathMapper
from p4lens.features.path_mapping.service.router import router as path_mapping_router
from p4lens.features.reconcile.data.output_parser import ReconcileOutputParser
from p4lens.features.reconcile.data.p4_adapter import P4ReconcileAdapter
from p4lens.features.reconcile.data.repository import SqlScanCacheStore
from p4lens.features.reconcile.service.orchestrator import ReconcileOrchestrator
from p4lens.features.reconcile.service.router import router as reconcile_router
from p4lens.features.workspace.service.router import router as workspace_router

logger = logging.getLogger(__name__)


def create_app(session: Optional[P4Session] = None, session_factory=SessionLocal, bind=None) -> FastAPI:
    """
    Builds the HTTP app. One P4Session, one scan cache and one orchestrator per app.
    Tests pass their own session factory and engine.

    Serve with: uvicorn p4lens.main:create_app --factory
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    init_db(bind=bind)

    app = FastAPI(
        title="p4lens",
        version="0.1.0",
        description="Perforce modified/checked-out file browser with a persistent reconcile cache",
    )

    # ====== CORS ======
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ====== STATE ======
    p4_session = session or P4Session.from_settings()
    scan_cache = SqlScanCacheStore(session_factory=session_factory)

    app.state.p4_session = p4_session
    app.state.scan_cache = scan_cache
    app.state.orchestrator = ReconcileOrchestrator(
        cache=scan_cache,
        scanner=P4ReconcileAdapter(p4_session),
        parser=ReconcileOutputParser(),
        mapper=P4WherePathMapper(p4_session),
        locks=KeyedLocks(),
    )

    # ====== ROUTERS ======
    app.include_router(reconcile_router)
    app.include_router(opened_files_router)
    app.include_router(checkout_router)
    app.include_router(path_mapping_router)
    app.include_router(workspace_router)

    logger.info(f"p4lens ready (session: {p4_session.describe() or 'p4 environment defaults'})")
    return app

