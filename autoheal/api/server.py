"""
HTTP front end for the remediation bot.

Endpoints:
- POST /api/analyze           message -> ProcessResult (+ Block Kit blocks)
- POST /api/actions/approve   approval event -> ApprovalOutcome
- POST /api/actions/reject    rejection event -> ApprovalOutcome
- POST /api/search-all        re-run a question across all channels
- POST /api/history/index     ingest chat history into the RAG index
- GET  /health
- GET  /metrics
"""

import inspect
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from autoheal import __version__
from autoheal.agents.human_review import ApprovalCoordinator
from autoheal.agents.orchestrator import MessageOrchestrator
from autoheal.api.slack_blocks import outcome_blocks, parse_search_all_value, response_blocks
from autoheal.models.execution import ApprovalEvent, ApprovalKind
from autoheal.models.retrieval import HistoryMessage
from autoheal.observability.metrics import render_latest
from autoheal.utils.error_handling import ActionTokenError, RetrievalError

logger = logging.getLogger(__name__)


class AnalyzeRequest(BaseModel):
    text: str = Field("", description="Message text")
    channel_id: Optional[str] = Field(None, description="Channel to scope history search to")
    message_ts: Optional[str] = Field(None, description="Originating message reference")


class ApprovalRequest(BaseModel):
    token: str = Field(..., description="Encoded action token from the approval control")
    actor: Optional[str] = Field(None, description="Who approved or rejected")


class SearchAllRequest(BaseModel):
    text: Optional[str] = Field(None, description="Original question")
    message_ts: Optional[str] = None
    value: Optional[str] = Field(None, description="Raw value of the search-all button")


class IndexHistoryRequest(BaseModel):
    messages: list[HistoryMessage] = Field(default_factory=list, description="Messages to ingest")


def create_app(
    orchestrator: MessageOrchestrator,
    coordinator: ApprovalCoordinator,
    closers: Optional[list[Callable[[], Any]]] = None,
    enable_cors: bool = False,
) -> FastAPI:
    """Build the FastAPI app around already-constructed collaborators.

    `closers` run on shutdown (sync or async callables).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("autoheal API starting")
        yield
        for close in closers or []:
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Error during shutdown: {e}")
        logger.info("autoheal API stopped")

    app = FastAPI(
        title="autoheal - Alert Remediation Bot",
        version=__version__,
        description="Policy-gated alert remediation with chat history RAG fallback",
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    async def _handle_approval(kind: ApprovalKind, request: ApprovalRequest) -> dict:
        event = ApprovalEvent(kind=kind, token=request.token, actor=request.actor)
        try:
            outcome = await coordinator.handle(event)
        except ActionTokenError as e:
            logger.warning(f"Rejected malformed action token: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        body = outcome.model_dump(mode="json")
        body["blocks"] = outcome_blocks(outcome)
        return body

    @app.post("/api/analyze")
    async def analyze(request: AnalyzeRequest):
        result = await orchestrator.process(
            request.text, channel_scope=request.channel_id, origin_ref=request.message_ts
        )
        body = result.model_dump(mode="json")
        body["blocks"] = response_blocks(result, request.text, origin_ref=request.message_ts)
        return body

    @app.post("/api/actions/approve")
    async def approve(request: ApprovalRequest):
        return await _handle_approval(ApprovalKind.APPROVE, request)

    @app.post("/api/actions/reject")
    async def reject(request: ApprovalRequest):
        return await _handle_approval(ApprovalKind.REJECT, request)

    @app.post("/api/search-all")
    async def search_all(request: SearchAllRequest):
        text, origin_ref = request.text, request.message_ts
        if request.value:
            try:
                value = parse_search_all_value(request.value)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=f"Malformed search-all value: {e}")
            text = value["original_text"]
            origin_ref = value.get("original_message_ts") or origin_ref
        if not text:
            raise HTTPException(status_code=400, detail="Either text or value is required")

        result = await orchestrator.process(text, channel_scope=None, origin_ref=origin_ref)
        body = result.model_dump(mode="json")
        body["blocks"] = response_blocks(result, text, origin_ref=origin_ref)
        return body

    @app.post("/api/history/index")
    async def index_history(request: IndexHistoryRequest):
        try:
            written = await orchestrator.retrieval.index_messages(request.messages)
        except RetrievalError as e:
            logger.error(f"History ingestion failed: {e}")
            raise HTTPException(status_code=503, detail="History ingestion failed")
        return {"messages": len(request.messages), "chunks": written}

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "remote_execution": coordinator.executor_enabled,
        }

    @app.get("/metrics")
    async def metrics():
        payload, content_type = render_latest()
        return Response(payload, media_type=content_type)

    return app
