"""Hybrid search: lexical matches first, then semantic matches, deduplicated."""

import logging
from typing import Iterable, List

from clipsage.core.embeddings import EmbeddingProvider
from clipsage.core.similarity import rank_by_similarity
from clipsage.core.storage import ClipStore
from clipsage.models.schemas import ClipEntry

logger = logging.getLogger(__name__)

# Most recent clips considered for semantic scoring.
SEMANTIC_WINDOW = 1000


def merge_results(*ranked_lists: Iterable[ClipEntry], limit: int) -> List[ClipEntry]:
    """Concatenate ranked lists in priority order, keeping the first of each id."""
    merged = []
    seen_ids = set()
    for ranked in ranked_lists:
        for entry in ranked:
            if entry.id in seen_ids:
                continue
            seen_ids.add(entry.id)
            merged.append(entry)
            if len(merged) >= limit:
                return merged
    return merged


class HybridSearcher:
    """
    Combines FTS5 lexical matches with cosine-similarity matches.

    Lexical rank is authoritative: a clip found by both searches keeps its
    lexical position, and semantic search only contributes clips the lexical
    search missed. The query is always embedded, even when lexical matches
    already fill the limit.
    """

    def __init__(
        self,
        store: ClipStore,
        provider: EmbeddingProvider,
        semantic_window: int = SEMANTIC_WINDOW,
    ):
        self.store = store
        self.provider = provider
        self.semantic_window = semantic_window

    async def search(self, query_text: str, limit: int) -> List[ClipEntry]:
        """Boundary entry point: blank queries list recent clips instead."""
        if limit <= 0:
            return []
        if not query_text or not query_text.strip():
            return self.store.get_recent(limit)
        return await self.hybrid_search(query_text, limit)

    async def hybrid_search(self, query_text: str, limit: int) -> List[ClipEntry]:
        """Lexical + semantic search.

        Provider failures propagate; there is no lexical-only fallback.
        """
        if limit <= 0:
            return []

        lexical = self.store.get_by_lexical_query(query_text, limit)

        query_embedding = await self.provider.embed(query_text)

        semantic = self.semantic_search(query_embedding, limit)

        results = merge_results(lexical, semantic, limit=limit)
        logger.debug(
            f"Hybrid search {query_text!r}: {len(lexical)} lexical, "
            f"{len(semantic)} semantic, {len(results)} merged"
        )
        return results

    async def semantic_query(self, query_text: str, limit: int) -> List[ClipEntry]:
        """Semantic-only search: embed the text, then rank by similarity."""
        if limit <= 0:
            return []

        query_embedding = await self.provider.embed(query_text)
        results = self.semantic_search(query_embedding, limit)
        logger.debug(f"Semantic search {query_text!r}: {len(results)} results")
        return results

    def semantic_search(self, query_embedding: List[float], limit: int) -> List[ClipEntry]:
        """Top ``limit`` clips of the recent window by cosine similarity."""
        working_set = self.store.get_recent(self.semantic_window)
        scored = rank_by_similarity(query_embedding, working_set)
        return [entry for _, entry in scored[:limit]]
