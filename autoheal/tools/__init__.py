# Tools Package
"""
Clients for external collaborators.

- embedding_client: size-constrained embeddings with downsizing retry
- history_index: Qdrant / in-memory vector index of chat history
- mcp_client: MCP stdio transport and lazy connection manager
- remediation_tools: discover -> execute remediation protocol
"""
