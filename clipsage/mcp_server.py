#!/usr/bin/env python3
"""ClipSage MCP Server - clipboard history with hybrid retrieval."""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from mcp.server.models import InitializationOptions
from mcp.server.lowlevel import NotificationOptions

from clipsage.core.config import Settings
from clipsage.core.embeddings import EmbeddingProvider, create_embedding_provider
from clipsage.core.search import HybridSearcher
from clipsage.core.storage import ClipStore
from clipsage.models.schemas import ClipEntry, ClipResponse

logger = logging.getLogger(__name__)


class ClipSageMCPServer:
    """MCP Server exposing the clip store and hybrid search as tools."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ClipStore] = None,
        provider: Optional[EmbeddingProvider] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.provider = provider or create_embedding_provider(self.settings)
        self.store = store or ClipStore(self.settings.resolved_db_path, self.provider)
        self.searcher = HybridSearcher(
            self.store, self.provider, semantic_window=self.settings.semantic_window
        )

        self.app = Server("clipsage")
        self._register_handlers()

    def _register_handlers(self):
        """Register MCP protocol handlers."""
        max_limit = max(self.settings.search_limit, 100)

        @self.app.list_tools()
        async def list_tools() -> List[Tool]:
            return [
                Tool(
                    name="clip_add",
                    description="Store a clipboard snippet and index it for search",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "content": {
                                "type": "string",
                                "description": "Captured text",
                            },
                            "summary": {
                                "type": "string",
                                "description": "Short summary of the content",
                                "default": "",
                            },
                            "tags": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Optional tags",
                                "default": [],
                            },
                            "source": {
                                "type": "string",
                                "description": "Where the snippet came from",
                            },
                        },
                        "required": ["content"],
                    },
                ),
                Tool(
                    name="clip_search",
                    description="Keyword and semantic search through clipboard history; "
                    "an empty query lists recent clips",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "query": {
                                "type": "string",
                                "description": "Search text",
                            },
                            "limit": {
                                "type": "integer",
                                "description": "Maximum results to return",
                                "default": self.settings.search_limit,
                                "minimum": 1,
                                "maximum": max_limit,
                            },
                        },
                        "required": ["query"],
                    },
                ),
                Tool(
                    name="clip_semantic_search",
                    description="Find clips by meaning only, ranked by embedding similarity",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "query": {
                                "type": "string",
                                "description": "Text describing what to find",
                            },
                            "limit": {
                                "type": "integer",
                                "description": "Maximum results to return",
                                "default": self.settings.search_limit,
                                "minimum": 1,
                                "maximum": max_limit,
                            },
                        },
                        "required": ["query"],
                    },
                ),
                Tool(
                    name="clip_list",
                    description="List recent clipboard entries",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "limit": {
                                "type": "integer",
                                "description": "Number of entries to return",
                                "default": self.settings.search_limit,
                                "minimum": 1,
                                "maximum": max_limit,
                            }
                        },
                    },
                ),
                Tool(
                    name="clip_get",
                    description="Fetch one clipboard entry by ID",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "clip_id": {
                                "type": "string",
                                "description": "Unique clip identifier",
                            }
                        },
                        "required": ["clip_id"],
                    },
                ),
                Tool(
                    name="clip_remove",
                    description="Remove clipboard entry by ID",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "clip_id": {
                                "type": "string",
                                "description": "Unique clip identifier",
                            }
                        },
                        "required": ["clip_id"],
                    },
                ),
                Tool(
                    name="clip_stats",
                    description="Get clipboard usage statistics",
                    inputSchema={"type": "object", "properties": {}},
                ),
            ]

        @self.app.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return await self.handle_call(name, arguments)

    async def handle_call(self, name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        """Run a tool and wrap its result, or its error, as JSON text."""
        try:
            result = await self._dispatch_tool_call(name, arguments or {})
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            result = {"error": str(e), "error_type": type(e).__name__, "tool": name}
        return [
            TextContent(
                type="text",
                text=json.dumps(result, indent=2, ensure_ascii=False, default=str),
            )
        ]

    async def _dispatch_tool_call(
        self, name: str, arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        handlers = {
            "clip_add": self._handle_clip_add,
            "clip_search": self._handle_clip_search,
            "clip_semantic_search": self._handle_clip_semantic_search,
            "clip_list": self._handle_clip_list,
            "clip_get": self._handle_clip_get,
            "clip_remove": self._handle_clip_remove,
            "clip_stats": self._handle_clip_stats,
        }

        handler = handlers.get(name)
        if not handler:
            raise ValueError(f"Unknown tool: {name}")

        return await handler(arguments)

    async def _handle_clip_add(self, args: Dict[str, Any]) -> Dict[str, Any]:
        entry = ClipEntry(
            content=args["content"],
            summary=args.get("summary", ""),
            tags=args.get("tags", []),
            source=args.get("source"),
        )
        stored = await self.store.insert(entry)
        return ClipResponse(
            id=stored.id,
            status="stored",
            message=f"Content stored with ID {stored.id}",
        ).model_dump()

    async def _handle_clip_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = args.get("query", "")
        limit = int(args.get("limit", self.settings.search_limit))

        results = await self.searcher.search(query, limit)
        return {
            "query": query,
            "results": [entry.to_public_dict() for entry in results],
            "count": len(results),
        }

    async def _handle_clip_semantic_search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = args["query"]
        limit = int(args.get("limit", self.settings.search_limit))

        results = await self.searcher.semantic_query(query, limit)
        return {
            "query": query,
            "results": [entry.to_public_dict() for entry in results],
            "count": len(results),
        }

    async def _handle_clip_list(self, args: Dict[str, Any]) -> Dict[str, Any]:
        limit = int(args.get("limit", self.settings.search_limit))
        clips = self.store.get_recent(limit)
        return {
            "clips": [entry.to_public_dict() for entry in clips],
            "count": len(clips),
            "limit": limit,
        }

    async def _handle_clip_get(self, args: Dict[str, Any]) -> Dict[str, Any]:
        clip_id = args["clip_id"]
        entry = self.store.get(clip_id)
        if entry is None:
            return ClipResponse(id=clip_id, status="not_found").model_dump()
        return entry.to_public_dict()

    async def _handle_clip_remove(self, args: Dict[str, Any]) -> Dict[str, Any]:
        clip_id = args["clip_id"]
        status = "removed" if self.store.delete(clip_id) else "not_found"
        return ClipResponse(id=clip_id, status=status).model_dump()

    async def _handle_clip_stats(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return self.store.get_stats()

    async def run(self):
        """Run MCP server over stdio."""
        async with stdio_server() as (read_stream, write_stream):
            await self.app.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name="clipsage",
                    server_version="0.1.0",
                    capabilities=self.app.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )


async def async_main():
    server = ClipSageMCPServer()
    try:
        await server.run()
    finally:
        server.store.close()


def main():
    """Synchronous entry point for console script."""
    settings = Settings.from_env()
    # stdout carries the MCP protocol
    logging.basicConfig(
        level=settings.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("ClipSage MCP Server stopped")


if __name__ == "__main__":
    main()
