"""
Pydantic models for vector rows, indexing results and search results
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List
from uuid import UUID


class VectorRow(BaseModel):
    id: UUID
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    vector: List[float] = Field(default_factory=list, description="Embedding of content")


class IndexingResult(BaseModel):
    num_added: int = 0
    num_skipped: int = 0
    num_deleted: int = 0


class SearchResult(BaseModel):
    id: UUID
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    distance: float = Field(..., ge=0, description="L2 distance to the query embedding")

    @property
    def source(self) -> str:
        return self.metadata.get("source", "unknown")
