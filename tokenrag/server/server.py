"""
TokenRAG MCP Server.

Transport: stdio.

Expected MCP Tool Return Format:
{
    "ok": bool,
    ...                      # Tool-specific fields if ok is True
    "error": str             # Present if ok is False
}
"""

import argparse
import logging
import os
import signal
import sys
from contextlib import asynccontextmanager
from typing import Any, Annotated, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..common.config import load_config, validate_config
from ..common.errors import ConfigurationError, TokenRAGError
from ..service import TokenRAGService

logger = logging.getLogger("tokenrag.server")

# Fragment content returned by search tools is truncated to this many characters
SOURCE_CONTENT_LIMIT = 500


def _error(exc: Exception) -> Dict[str, Any]:
    return {"ok": False, "error": str(exc)}


class MCPServerApp:
    """
    Main application class for the MCP server.

    The server owns no state of its own: every tool delegates to the
    injected TokenRAGService, whose lifecycle follows the server's.
    """
    def __init__(
            self,
            service: TokenRAGService,
            mcp_server_name: str = "tokenrag_mcp_server",
        ) -> None:
        """
        Args:
            service (TokenRAGService): Configured service instance.
            mcp_server_name (str): The name of the MCP server.
        """
        self.service = service

        @asynccontextmanager
        async def _lifespan(server: FastMCP):
            await self.service.start()
            try:
                yield
            finally:
                await self.service.stop()

        self.mcp = FastMCP(name=mcp_server_name, lifespan=_lifespan)

        # ---------- MCP Tools: Index Entities ---------- #
        @self.mcp.tool(
            name="index_entities",
            description=(
                "Index token metadata records. Each record needs id, name and symbol; "
                "other fields (description, price, marketCap, tags, audit, risk, ...) are optional. "
                "Records are chunked, embedded and upserted into the vector index."
            ),
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False)
        )
        async def tool_index_entities(
            tokens: Annotated[List[Dict[str, Any]], Field(description="token metadata records to index")],
        ) -> Dict[str, Any]:
            try:
                result = await self.service.index_entities(tokens)
            except TokenRAGError as e:
                return _error(e)
            return {"ok": result.success, **result.to_dict()}

        # ---------- MCP Tools: Ask ---------- #
        @self.mcp.tool(
            name="ask",
            description=(
                "Answer a question about indexed tokens. Pass session_id to keep a "
                "conversation going; follow-up questions pick up symbols from recent turns."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_ask(
            query: Annotated[str, Field(description="natural language question")],
            session_id: Annotated[Optional[str], Field(
                description="conversation id; omit for a one-off question"
            )] = None,
        ) -> Dict[str, Any]:
            try:
                if session_id:
                    response = await self.service.chat(session_id, query)
                else:
                    response = await self.service.answer_query(query)
            except TokenRAGError as e:
                logger.error("ask failed: %s", e, exc_info=True)
                return _error(e)
            return {"ok": True, **response.to_dict(SOURCE_CONTENT_LIMIT)}

        # ---------- MCP Tools: Search Token ---------- #
        @self.mcp.tool(
            name="search_token",
            description=(
                "Look up a token by symbol (e.g. BTC) or id. Falls back to semantic "
                "search when no exact match exists."
            ),
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_search_token(
            identifier: Annotated[str, Field(description="token symbol, id or free text")],
        ) -> Dict[str, Any]:
            try:
                results = await self.service.search_by_identifier(identifier)
            except TokenRAGError as e:
                return _error(e)
            return {
                "ok": True,
                "count": len(results),
                "results": [r.to_dict(SOURCE_CONTENT_LIMIT) for r in results],
            }

        # ---------- MCP Tools: Close Session ---------- #
        @self.mcp.tool(
            name="close_session",
            description="End a conversation and discard its history.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_close_session(
            session_id: Annotated[str, Field(description="conversation id to close")],
        ) -> Dict[str, Any]:
            closed = self.service.close_session(session_id)
            if not closed:
                return {"ok": False, "error": f"Unknown session: {session_id}"}
            return {"ok": True, "session_id": session_id}

        # ---------- MCP Tools: Delete Token ---------- #
        @self.mcp.tool(
            name="delete_token",
            description="Remove every indexed fragment of one token.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_delete_token(
            token_id: Annotated[str, Field(description="token id as indexed")],
        ) -> Dict[str, Any]:
            try:
                await self.service.delete_entity(token_id)
            except TokenRAGError as e:
                return _error(e)
            return {"ok": True, "token_id": token_id}

        # ---------- MCP Tools: Index Stats ---------- #
        @self.mcp.tool(
            name="index_stats",
            description="Vector index statistics (vector count, dimension, namespaces).",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_index_stats() -> Dict[str, Any]:
            try:
                stats = await self.service.get_stats()
            except TokenRAGError as e:
                return _error(e)
            return {"ok": True, "stats": stats}

        # ---------- MCP Tools: Health ---------- #
        @self.mcp.tool(
            name="health",
            description="Health of the embedding provider, vector index and LLM client.",
            annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False)
        )
        async def tool_health() -> Dict[str, Any]:
            health = await self.service.get_health()
            return {"ok": health["status"] == "healthy", **health}

        # ---------- MCP Tools: Clear Index ---------- #
        @self.mcp.tool(
            name="clear_index",
            description="Delete ALL vectors from the index. Requires confirm=true.",
            annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True)
        )
        async def tool_clear_index(
            confirm: Annotated[bool, Field(description="must be true to clear the index")] = False,
        ) -> Dict[str, Any]:
            if not confirm:
                return {"ok": False, "error": "Refusing to clear the index without confirm=true"}
            try:
                await self.service.clear_index()
            except TokenRAGError as e:
                return _error(e)
            return {"ok": True, "cleared": True}

    def run(self) -> None:
        """Runs the MCP server using stdio transport."""
        self.mcp.run(transport="stdio")


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run the TokenRAG MCP server (stdio).")
    parser.add_argument(
        "--server-name",
        default=os.getenv("MCP_SERVER_NAME", "tokenrag_mcp_server"),
        help="Advertised MCP server name.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("TOKENRAG_LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    args = parser.parse_args(argv)

    # stdout carries the stdio transport
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = load_config()
    try:
        validate_config(config)
    except ConfigurationError as e:
        logger.error("%s", e)
        raise SystemExit(1)

    app = MCPServerApp(
        service=TokenRAGService.from_config(config),
        mcp_server_name=args.server_name,
    )

    def _handle_shutdown(signum, frame):
        raise SystemExit(0)
    for sig in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if sig is not None:
            signal.signal(sig, _handle_shutdown)

    app.run()


if __name__ == "__main__":
    main()
