"""Document model shared by the vector store and the loader."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """A unit of text with its metadata.

    Attributes:
        id: Document id (assigned on insert when absent)
        content: Document text
        metadata: Flat metadata mapping
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "3f0c8f4e-8d57-4a51-9d39-1c1f1d7b4f5e",
                "content": "Postgres stores vectors with the pgvector extension",
                "metadata": {"page": 0, "source": "docs"},
            }
        }
    )

    id: Optional[str] = Field(default=None, description="Document id")
    content: str = Field(description="Document text")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Document metadata")
