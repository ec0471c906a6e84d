"""MCP Server - FastAPI Application.

Serves MCP JSON-RPC over plain HTTP (``POST /mcp``) and over Server-Sent
Events (``GET /sse`` + ``POST /messages``).
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging
from mcp_server.audit import AuditLogger
from mcp_server.auth import AuthorizationGate, IdentityResolver
from mcp_server.oauth import build_providers
from mcp_server.registry import build_registry
from mcp_server.router import JsonRpcRouter
from mcp_server.sessions import SessionManager
from mcp_server.store import CredentialStore, SQLiteStore
from mcp_server.tokens import TokenLifecycleManager
from tools import TOOL_MODULES

logger = get_logger(__name__)

ENDPOINTS = ["/mcp", "/sse", "/messages", "/health"]


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
    http: Optional[httpx.AsyncClient] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings, defaults to ``get_settings()``
        store: Credential store, defaults to SQLite at the configured path
        http: Outbound HTTP client, defaults to one with the provider timeout
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan handler."""
        app_settings = settings or get_settings()
        server = app_settings.mcp_server
        setup_logging(app_settings.log_level, json_output=app_settings.environment == "production")

        logger.info("Starting MCP Server", name=server.name, version=server.version)

        client = http or httpx.AsyncClient(timeout=server.provider_timeout_seconds)
        credential_store = store or SQLiteStore(server.database_path)

        registry = build_registry(TOOL_MODULES)
        await credential_store.sync_tools(registry.list_tools())

        tokens = TokenLifecycleManager(
            store=credential_store,
            providers=build_providers(app_settings, client),
            tool_providers=registry.auth_providers(),
            guard_seconds=server.token_guard_seconds,
            default_lifetime_seconds=server.default_token_lifetime_seconds,
        )
        audit_logger = AuditLogger(log_path=server.audit_log_path, enabled=server.enable_audit)

        app.state.settings = app_settings
        app.state.registry = registry
        app.state.store = credential_store
        app.state.audit_logger = audit_logger
        app.state.sessions = SessionManager()
        app.state.identity = IdentityResolver(server.secret_key, require_auth=server.require_auth)
        app.state.router = JsonRpcRouter(
            registry=registry,
            gate=AuthorizationGate(credential_store, server.require_authorized_flag),
            tokens=tokens,
            http=client,
            settings=app_settings,
            audit_logger=audit_logger,
        )

        logger.info("MCP Server started", tool_count=len(registry))

        yield

        # Shutdown
        logger.info("Shutting down MCP Server")
        app.state.sessions.close_all()
        await audit_logger.flush()
        if http is None:
            await client.aclose()
        if store is None:
            await credential_store.close()

    app = FastAPI(
        title="MCP Tool Server",
        description="MCP JSON-RPC tool server with per-user tool subscriptions",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/mcp", tags=["MCP"])
    async def mcp_endpoint(
        request: Request,
        background_tasks: BackgroundTasks,
        user_id: Optional[str] = Query(default=None, alias="userId"),
        authorization: Optional[str] = Header(default=None)
    ) -> Response:
        """JSON-RPC over HTTP. One envelope per request."""
        state = request.app.state
        acting_user = state.identity.resolve(user_id, authorization)

        outcome = await state.router.dispatch_raw(await request.body(), acting_user)

        if outcome.body is None:
            if outcome.notification is not None:
                background_tasks.add_task(state.router.handle_notification, outcome.notification)
            return Response(status_code=outcome.status_code, background=background_tasks)

        return JSONResponse(status_code=outcome.status_code, content=outcome.body)

    @app.get("/sse", tags=["MCP"])
    async def sse_endpoint(
        request: Request,
        user_id: Optional[str] = Query(default=None, alias="userId"),
        authorization: Optional[str] = Header(default=None)
    ) -> EventSourceResponse:
        """
        Open an SSE stream.

        The first event is ``endpoint`` naming where to POST messages;
        responses follow as ``message`` events.
        """
        state = request.app.state
        acting_user = state.identity.resolve(user_id, authorization)
        sessions: SessionManager = state.sessions
        session = sessions.create(acting_user)

        async def event_generator() -> AsyncIterator[dict[str, Any]]:
            try:
                yield {"event": "endpoint", "data": session.endpoint}
                while True:
                    message = await session.queue.get()
                    yield {"event": "message", "data": json.dumps(message)}
            finally:
                sessions.remove(session.session_id)

        return EventSourceResponse(
            event_generator(),
            ping=state.settings.mcp_server.sse_ping_seconds
        )

    @app.post("/messages", tags=["MCP"], status_code=status.HTTP_202_ACCEPTED)
    async def messages_endpoint(
        request: Request,
        background_tasks: BackgroundTasks,
        session_id: Optional[str] = Query(default=None, alias="sessionId")
    ) -> Response:
        """Accept a JSON-RPC message for an SSE session; the reply goes to the stream."""
        state = request.app.state

        if not session_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="sessionId is required")

        session = state.sessions.get(session_id)
        if session is None:
            logger.warning("Message for unknown SSE session", session_id=session_id)
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

        outcome = await state.router.dispatch_raw(await request.body(), session.user_id)

        if outcome.body is not None:
            await state.sessions.send(session_id, outcome.body)
        elif outcome.notification is not None:
            background_tasks.add_task(state.router.handle_notification, outcome.notification)

        return Response(
            content="Accepted",
            status_code=status.HTTP_202_ACCEPTED,
            background=background_tasks
        )

    @app.get("/health", tags=["System"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "ok",
            "tools": len(request.app.state.registry),
            "endpoints": ENDPOINTS,
        }

    return app


app = create_app()


def main():
    """Run the MCP Server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mcp_server.main:app",
        host=settings.mcp_server.host,
        port=settings.mcp_server.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
