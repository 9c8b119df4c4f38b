"""
Semantic search core types.
Vector overlay over the canonical note store; the store remains the source of truth.
"""

from typing import Dict
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Note:
    """A note as handed over by the note store."""

    id: str
    """Stable external identifier"""

    title: str = ""

    content: str = ""

    @property
    def text(self) -> str:
        """Text the vector is derived from."""
        return f"{self.title} {self.content}"


@dataclass
class QueryResult:
    """Represents a search hit returned by the index manager."""

    id: str
    """External note id of the match"""

    score: float
    """Cosine distance to the query (0 = identical direction, lower is closer)"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Additional details about the hit, e.g. the internal id"""
