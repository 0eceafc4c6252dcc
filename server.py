#!/usr/bin/env python3
"""
Local Memory MCP Server - Ollama embeddings + LanceDB

Exposes the long-term memory engine to an agent as MCP tools:
- memory_search: nearest-neighbour cosine search over stored memories
- memory_store: save a piece of text with a detected category
- memory_forget: delete by id, or the single best match for a query
- memory_profile: stable facts, recent context and related memories
"""

from __future__ import annotations

import asyncio
import threading

from mcp.server.fastmcp import FastMCP

from categories import MEMORY_CATEGORIES, detect_category
from config import Config, load_config
from memory_client import LocalMemoryClient
from models import LocalMemoryError
from utils import init_logger, limit_text, log, now_iso

STORE_PREVIEW_CHARS = 80
MAX_SEARCH_LIMIT = 50

# =============================================================================
# Client (Lazy Singleton)
# =============================================================================

_lock = threading.Lock()
_config: Config | None = None
_client: LocalMemoryClient | None = None


def get_config() -> Config:
    global _config
    if _config is None:
        with _lock:
            if _config is None:  # Double-check after acquiring lock
                _config = load_config()
                init_logger(_config.debug)
    return _config


def get_client() -> LocalMemoryClient:
    """Get or create the memory client singleton (thread-safe)."""
    global _client
    if _client is None:
        config = get_config()
        with _lock:
            if _client is None:
                _client = LocalMemoryClient.from_config(config)
    return _client


# =============================================================================
# FastMCP Server
# =============================================================================

mcp = FastMCP(
    "localmemory",
    instructions="Local long-term memory using Ollama embeddings + LanceDB cosine search",
)


@mcp.tool(
    annotations={
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
    }
)
async def memory_search(query: str, limit: int = 5) -> str:
    """Search long-term memory for information relevant to a query.

    Args:
        query: What to look for
        limit: Max results (default 5, max 50)
    """
    if not query.strip():
        return "Error: query is required"
    if limit <= 0:
        return f"Error: limit must be positive, got {limit}"
    if limit > MAX_SEARCH_LIMIT:
        return f"Error: limit cannot exceed {MAX_SEARCH_LIMIT}, got {limit}"

    try:
        results = await get_client().search(query, limit)
    except LocalMemoryError as e:
        return f"Error: {e}"
    except Exception as e:
        log.error("search failed: %s", e)
        return f"Error: search failed: {e}"

    if not results:
        return "No relevant memories found."

    lines = [f"Found {len(results)} memories:\n"]
    for i, r in enumerate(results, 1):
        category = r.metadata.get("type", "other")
        lines.append(f"[{i}] {category} (ID: {r.id})")
        lines.append(f"    {r.content}")
        if r.similarity is not None:
            lines.append(f"    Similarity: {r.similarity:.0%}")
        lines.append("")
    return "\n".join(lines)


@mcp.tool(
    annotations={
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
    }
)
async def memory_store(text: str, category: str | None = None) -> str:
    """Save important information to long-term memory.

    Args:
        text: Information to remember
        category: One of preference, decision, entity, fact, other (detected if omitted)
    """
    if category is not None and category not in MEMORY_CATEGORIES:
        return f"Error: Invalid category '{category}'. Valid: {list(MEMORY_CATEGORIES)}"
    category = category or detect_category(text)
    log.debug('store tool: category="%s"', category)

    # No custom id: each stored memory is new, never an overwrite
    try:
        await get_client().add_memory(text, {"type": category, "source": "tool", "timestamp": now_iso()})
    except LocalMemoryError as e:
        return f"Error: {e}"
    except Exception as e:
        log.error("store failed: %s", e)
        return f"Error: failed to store memory: {e}"

    return f'Stored: "{limit_text(text.strip(), STORE_PREVIEW_CHARS)}"'


@mcp.tool(
    annotations={
        "readOnlyHint": False,
        "destructiveHint": True,
        "idempotentHint": True,
    }
)
async def memory_forget(query: str | None = None, memory_id: str | None = None) -> str:
    """Forget a memory by ID, or the single memory that best matches a query.

    Args:
        query: Description of the memory to forget
        memory_id: Exact ID of the memory to delete
    """
    client = get_client()
    try:
        if memory_id:
            await client.delete_memory(memory_id)
            return f"Deleted memory {memory_id}"
        if query and query.strip():
            result = await client.forget_by_query(query)
            return result.message
    except LocalMemoryError as e:
        return f"Error: {e}"
    except Exception as e:
        log.error("forget failed: %s", e)
        return f"Error: forget failed: {e}"
    return "Error: provide a query or memory_id"


@mcp.tool(
    annotations={
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
    }
)
async def memory_profile(query: str | None = None) -> str:
    """Get the user profile: stable preferences, recent context, related memories.

    Args:
        query: Optional query to pull related memories into the profile
    """
    try:
        profile = await get_client().get_profile(query)
    except LocalMemoryError as e:
        return f"Error: {e}"
    except Exception as e:
        log.error("profile failed: %s", e)
        return f"Error: profile lookup failed: {e}"

    if not profile.static and not profile.dynamic and not profile.search_results:
        return "No profile information available yet."

    lines = []
    if profile.static:
        lines.append("Stable Preferences:")
        lines.extend(f"  - {fact}" for fact in profile.static)
    if profile.dynamic:
        lines.append("Recent Context:")
        lines.extend(f"  - {fact}" for fact in profile.dynamic)
    if profile.search_results:
        lines.append("Related Memories:")
        for hit in profile.search_results:
            score = f" ({hit['similarity']:.0%})" if hit.get("similarity") is not None else ""
            lines.append(f"  - {hit['memory']}{score}")
    return "\n".join(lines)


# =============================================================================
# Server Entry Point
# =============================================================================


async def run_server():
    """Run the MCP server, connecting to the store before serving."""
    client = get_client()
    await client.ensure_initialized()
    log.info("connected (db: %s)", client.db_path)
    try:
        await mcp.run_stdio_async()
    finally:
        await client.close()
        log.info("stopped")


def main():
    """Entry point."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
