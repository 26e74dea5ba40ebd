"""
autoheal - Main Entry Point

Composition root: builds the collaborators from configuration, owns the
remote tool connection manager and serves the HTTP API with uvicorn.
"""

import asyncio
import logging
import sys
from typing import Any, Callable, Optional

import uvicorn

from autoheal.agents.alert_parser import ParserEngine
from autoheal.agents.human_review import ApprovalCoordinator
from autoheal.agents.orchestrator import MessageOrchestrator
from autoheal.agents.report_agent import ReportAgent
from autoheal.agents.retrieval_agent import RetrievalEngine
from autoheal.api.server import create_app
from autoheal.config.settings import Config, get_config
from autoheal.ollama_client import OllamaClient
from autoheal.rules.policies import PolicyRegistry
from autoheal.rules.policy_engine import DecisionEngine
from autoheal.tools.embedding_client import EmbeddingClient
from autoheal.tools.history_index import HistoryIndex, HistoryIndexError, InMemoryHistoryIndex, QdrantHistoryIndex
from autoheal.tools.mcp_client import ToolConnectionManager, stdio_connector
from autoheal.tools.remediation_tools import RemediationToolClient

logger = logging.getLogger("autoheal")


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_history_index(config: Config) -> HistoryIndex:
    settings = config.retrieval
    if settings.backend == "memory":
        logger.info("Using in-memory history index")
        return InMemoryHistoryIndex()

    index = QdrantHistoryIndex(
        host=settings.qdrant_host,
        port=settings.qdrant_port,
        collection_name=settings.collection_name,
        vector_dim=settings.vector_dim,
    )
    try:
        return index.connect()
    except HistoryIndexError as e:
        logger.warning(f"Could not initialize Qdrant history index, falling back to in-memory: {e}")
        return InMemoryHistoryIndex()


def build_components(
    config: Config,
) -> tuple[MessageOrchestrator, ApprovalCoordinator, list[Callable[[], Any]]]:
    """Wire the pipeline from configuration.

    Returns:
        (orchestrator, coordinator, closers to run on shutdown)
    """
    closers: list[Callable[[], Any]] = []

    policies = PolicyRegistry.load(config.governance.policy_path)

    ollama = OllamaClient(settings=config.ollama)
    closers.append(ollama.close)

    index = build_history_index(config)
    closers.append(index.close)

    tools: Optional[RemediationToolClient] = None
    if config.mcp.enabled:
        connections = ToolConnectionManager(stdio_connector(config.mcp.command, config.mcp.args))
        closers.append(connections.close)
        tools = RemediationToolClient(connections, timeout_seconds=config.mcp.timeout_seconds)
        logger.info(f"Remote remediation enabled via MCP server: {config.mcp.command}")
    else:
        logger.warning("Remote remediation disabled (ENABLE_MCP is not true); approvals will fail at discovery")

    parser = ParserEngine(
        policies,
        llm_client=ollama,
        llm_enabled=config.parser.llm_enabled,
        llm_timeout_seconds=config.parser.llm_timeout_seconds,
    )
    retrieval = RetrievalEngine(
        embedder=EmbeddingClient(ollama, settings=config.ollama),
        index=index,
        generator=ollama,
        settings=config.retrieval,
    )
    coordinator = ApprovalCoordinator(tools)
    orchestrator = MessageOrchestrator(
        parser=parser,
        decision_engine=DecisionEngine(),
        report_agent=ReportAgent(),
        retrieval=retrieval,
        coordinator=coordinator,
        auto_execute=config.governance.auto_execute,
    )
    return orchestrator, coordinator, closers


async def main() -> None:
    """Build the app and serve it until interrupted."""
    config = get_config()
    setup_logging(config.log_level)

    try:
        orchestrator, coordinator, closers = build_components(config)
    except Exception as e:
        logger.error(f"FATAL: {e}", exc_info=True)
        sys.exit(1)

    app = create_app(orchestrator, coordinator, closers=closers, enable_cors=config.api.enable_cors)

    logger.info(f"Serving on {config.api.host}:{config.api.port}")
    config_uvicorn = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.log_level.lower(),
        access_log=False,
    )
    server = uvicorn.Server(config_uvicorn)
    await server.serve()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
