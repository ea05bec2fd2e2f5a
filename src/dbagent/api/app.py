"""
Core API backend for dbagent.

It exposes the following endpoints:
- **GET /health**   - liveness probe with the MongoDB connection status.
- **POST /chat**    - one agent turn: {"message": "...", "conversation_id": "..."}
- **GET /tools**    - registered tools with their parameter schemas.
- **GET /history**  - the log of one conversation.
- **POST /clear**   - reset one conversation.
- **GET /test-db**  - list the collections of the configured database.
"""

import logging
from contextlib import asynccontextmanager
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Optional,
)

from fastapi import (
    FastAPI,
    HTTPException,
)
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from dbagent import __version__
from dbagent.agent.model_client import load_model_client
from dbagent.agent.orchestrator import AgentOrchestrator
from dbagent.api.models import (
    ChatRequest,
    ChatResponse,
    ClearRequest,
    HistoryResponse,
    ToolsResponse,
)
from dbagent.common import (
    AnsiColors,
    colored_print,
)
from dbagent.config import settings
from dbagent.core.conversation import DEFAULT_CONVERSATION_ID
from dbagent.db.mongo import (
    MongoStore,
    StoreNotConnectedError,
)
from dbagent.tools import build_store_registry

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(
    orchestrator: Optional[AgentOrchestrator] = None, store: Optional[MongoStore] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    orchestrator:
        Agent to serve.  Built from *store* and the configured model client when omitted.
    store:
        Document store.  A :class:`MongoStore` for ``settings.MONGO_URI`` when omitted.
    """
    store = store or MongoStore()
    if orchestrator is None:
        orchestrator = AgentOrchestrator(build_store_registry(store), load_model_client())

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            store.connect()
        except PyMongoError as exc:
            logger.error("Failed to connect to MongoDB: %s", exc)
            raise RuntimeError("Failed to connect to MongoDB") from exc
        yield
        store.disconnect()

    app = FastAPI(
        title="dbagent API",
        version=__version__,
        description="Tool-calling AI agent for MongoDB",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.state.store = store

    # Add CORS middleware so browser front-ends can call the API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    async def health() -> Dict[str, Any]:
        """Report server, database and agent status."""
        mongo_ok = store.ping()
        return {
            "status": "healthy",
            "timestamp": _now(),
            "services": {
                "server": "running",
                "mongodb": "connected" if mongo_ok else "disconnected",
                "agent": orchestrator.state.value,
            },
        }

    @app.post("/chat", response_model=ChatResponse, summary="Chat with the agent")
    async def chat(req: ChatRequest) -> ChatResponse:
        """
        Process a user message in the requested conversation.

        Turns run on the event loop thread, so two requests never interleave inside the agent.
        """
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Message is required and must be a string")

        conversation_id = req.conversation_id or DEFAULT_CONVERSATION_ID
        logger.info("New chat request: %s", req.message[:100])
        result = orchestrator.process_message(req.message, conversation_id=conversation_id)

        response = ChatResponse(
            success=result.success,
            response=result.response,
            conversation_id=conversation_id,
            error=result.error,
        )
        if result.tools_used:
            response.tools_used = result.tools_used
            response.tool_results = [outcome.to_jsonable() for outcome in result.tool_results]
        return response

    @app.get("/tools", response_model=ToolsResponse, summary="List available tools")
    async def tools() -> ToolsResponse:
        info = orchestrator.get_tool_info()
        return ToolsResponse(
            tools={name: dict(entry) for name, entry in info.items()}, count=len(info)
        )

    @app.get("/history", response_model=HistoryResponse, summary="Conversation history")
    async def history(conversation_id: str = DEFAULT_CONVERSATION_ID) -> HistoryResponse:
        messages = orchestrator.get_history(conversation_id)
        return HistoryResponse(
            conversation_id=conversation_id,
            history=[message.to_openai() for message in messages],
            count=len(messages),
        )

    @app.post("/clear", summary="Clear conversation history")
    async def clear(req: Optional[ClearRequest] = None) -> Dict[str, Any]:
        conversation_id = (req.conversation_id if req else None) or DEFAULT_CONVERSATION_ID
        orchestrator.clear_history(conversation_id)
        return {"success": True, "message": f"Conversation history cleared ({conversation_id})"}

    @app.get("/test-db", summary="Test the MongoDB connection")
    async def test_db() -> Dict[str, Any]:
        try:
            collections = store.list_collection_names()
        except (StoreNotConnectedError, PyMongoError) as exc:
            logger.warning("Database check failed: %s", exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return {
            "success": True,
            "message": "Database connection working",
            "collections": collections,
        }

    return app


# ---------------------------------------------------------------------------
# Server launcher
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0",
    port: int = 8000,
    reload: bool = False,
    log_level: str | None = None,
) -> None:
    """
    Serve :func:`create_app` with uvicorn (factory mode, so each worker builds its own store).

    *log_level* defaults to ``settings.LOG_LEVEL``; *reload* is meant for development only.
    """
    import uvicorn  # pylint: disable=import-outside-toplevel

    log_level = log_level or settings.LOG_LEVEL

    logger.info(
        "Starting dbagent API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )

    colored_print(f"dbagent API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "dbagent.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )
