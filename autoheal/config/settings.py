"""Configuration loader and environment variable management"""
import os
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from autoheal.config import DEFAULT_POLICY_PATH


load_dotenv()


def _int_list(raw: str) -> list[int]:
    return [int(part) for part in raw.split(",") if part.strip()]


class OllamaConfig(BaseModel):
    """Ollama embedding and generation endpoints"""
    base_url: str = Field(default_factory=lambda: os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"))
    chat_model: str = Field(default_factory=lambda: os.getenv("OLLAMA_CHAT_MODEL", "llama3.1"))
    embed_model: str = Field(default_factory=lambda: os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text"))
    timeout_seconds: float = Field(default_factory=lambda: float(os.getenv("OLLAMA_TIMEOUT", "60")))
    # nomic-embed-text accepts ~8192 tokens; ~4 chars per token leaves headroom at 10000
    max_embedding_length: int = Field(
        default_factory=lambda: int(os.getenv("MAX_EMBEDDING_LENGTH", "10000"))
    )
    embedding_fallback_sizes: list[int] = Field(
        default_factory=lambda: _int_list(os.getenv("EMBEDDING_FALLBACK_SIZES", "8000,5000,3000"))
    )


class RetrievalConfig(BaseModel):
    """History index and RAG prompt settings"""
    backend: str = Field(default_factory=lambda: os.getenv("HISTORY_BACKEND", "qdrant"))
    qdrant_host: str = Field(default_factory=lambda: os.getenv("QDRANT_HOST", "localhost"))
    qdrant_port: int = Field(default_factory=lambda: int(os.getenv("QDRANT_PORT", "6333")))
    collection_name: str = Field(default_factory=lambda: os.getenv("QDRANT_COLLECTION", "chat_history"))
    vector_dim: int = Field(default_factory=lambda: int(os.getenv("EMBEDDING_DIM", "768")))
    top_k: int = Field(default_factory=lambda: int(os.getenv("RAG_TOP_K", "5")))
    score_threshold: float = Field(default_factory=lambda: float(os.getenv("RAG_SCORE_THRESHOLD", "0.5")))
    max_context_chars: int = Field(default_factory=lambda: int(os.getenv("RAG_MAX_CONTEXT_CHARS", "6000")))
    chunk_size: int = Field(default_factory=lambda: int(os.getenv("HISTORY_CHUNK_SIZE", "1500")))
    chunk_overlap: int = Field(default_factory=lambda: int(os.getenv("HISTORY_CHUNK_OVERLAP", "200")))


class MCPConfig(BaseModel):
    """Remote remediation tool server (MCP over stdio)"""
    enabled: bool = Field(default_factory=lambda: os.getenv("ENABLE_MCP", "false").lower() == "true")
    command: str = Field(default_factory=lambda: os.getenv("MCP_SERVER_COMMAND", "node"))
    args: list[str] = Field(
        default_factory=lambda: [a for a in os.getenv("MCP_SERVER_ARGS", "").split(" ") if a]
    )
    timeout_seconds: float = Field(default_factory=lambda: float(os.getenv("MCP_TIMEOUT", "30")))


class ParserConfig(BaseModel):
    """Alert parser settings"""
    llm_enabled: bool = Field(
        default_factory=lambda: os.getenv("PARSER_LLM_ENABLED", "false").lower() == "true"
    )
    llm_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PARSER_LLM_TIMEOUT", "30"))
    )


class GovernanceConfig(BaseModel):
    """Remediation policy and automation switches"""
    policy_path: str = Field(default_factory=lambda: os.getenv("POLICY_PATH", str(DEFAULT_POLICY_PATH)))
    auto_execute: bool = Field(
        default_factory=lambda: os.getenv("AUTO_EXECUTE", "false").lower() == "true"
    )


class APIConfig(BaseModel):
    """HTTP front end"""
    host: str = Field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", os.getenv("API_PORT", "3000"))))
    enable_cors: bool = Field(default_factory=lambda: os.getenv("ENABLE_CORS", "false").lower() == "true")


class Config(BaseModel):
    """Master configuration"""
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    parser: ParserConfig = Field(default_factory=ParserConfig)
    governance: GovernanceConfig = Field(default_factory=GovernanceConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


# Global config instance
config = Config()


def get_config() -> Config:
    """Return the process-wide configuration."""
    return config
