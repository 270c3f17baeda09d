"""Data models for ClipSage."""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from clipsage.core.codec import Float32Vector


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClipEntry(BaseModel):
    """Canonical clip record."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    summary: str = ""
    tags: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utc_now)
    source: Optional[str] = None
    embedding: Optional[Float32Vector] = None

    def to_public_dict(self, include_embedding: bool = False) -> dict:
        """JSON-friendly view used by the MCP tools."""
        data = {
            "id": self.id,
            "content": self.content,
            "summary": self.summary,
            "tags": list(self.tags),
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }
        if include_embedding:
            data["embedding"] = self.embedding
        else:
            data["embedding_dim"] = len(self.embedding) if self.embedding else 0
        return data


class ClipResponse(BaseModel):
    """Response for clip operations."""

    id: str
    status: str
    message: Optional[str] = None
