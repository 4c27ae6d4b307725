from pydantic import BaseModel, Field, TypeAdapter


class DocumentRequest(BaseModel):
    """A document to index, as read from a JSON ingestion file"""

    path: str = Field(description="Unique document identifier")
    content: str = Field(description="Full text content of the document")
    metadata: dict[str, str] | None = Field(
        default=None, description="Optional string key/value metadata"
    )


DocumentRequestList = TypeAdapter(list[DocumentRequest])
