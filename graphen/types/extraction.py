"""
Extraction Types

Chunk-scoped output of the language-model extraction call. These are never
persisted directly; GraphResolver consumes them.

Models:
    - ExtractedEntity / ExtractedRelation: One mention each
    - ExtractionResult: Structured-output schema for one chunk
    - ExtractionSchema: Optional entity/relation type hints for the prompt
    - ChunkExtraction: One row of the extraction cache
"""

from pydantic import BaseModel, Field


class ExtractedEntity(BaseModel):
    """An entity mention found in one chunk."""

    name: str = Field(..., min_length=1, description="Entity name as it appears in the text")
    type: str = Field(..., min_length=1, description="Entity type, e.g. Technology, Person")
    description: str = Field(default="", description="1-2 sentence description")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Extraction confidence 0-1")


class ExtractedRelation(BaseModel):
    """A relation mention between two entity names found in one chunk."""

    source: str = Field(..., min_length=1, description="Source entity name")
    target: str = Field(..., min_length=1, description="Target entity name")
    type: str = Field(..., min_length=1, description="Relation type, e.g. USES")
    description: str = Field(default="", description="What the relation states")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Extraction confidence 0-1")


class ExtractionResult(BaseModel):
    """Entities and relations extracted from a single chunk."""

    entities: list[ExtractedEntity] = Field(
        default_factory=list, description="ALL entities mentioned in the text"
    )
    relations: list[ExtractedRelation] = Field(
        default_factory=list, description="Relations between the listed entities"
    )


class ExtractionSchema(BaseModel):
    """Type hints offered to the model. Empty lists fall back to the defaults."""

    entity_types: list[str] = Field(default_factory=list)
    relation_types: list[str] = Field(default_factory=list)


class ChunkExtraction(BaseModel):
    """Extraction result tagged with the chunk it came from."""

    chunk_id: str
    chunk_index: int
    result: ExtractionResult
