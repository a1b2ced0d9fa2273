"""
Modelos de consulta y resultados de búsqueda.

Los resultados son inmutables y nunca se persisten desde el motor.
Serializan con nombres camelCase (model_dump(by_alias=True)).
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vinculo.models.entity import Entity, EntityType
from vinculo.models.filters import FilterGroup


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _ResultModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class SearchQuery(_WireModel):
    """
    Búsqueda híbrida: texto libre + filtros estructurados.

    Un query vacío (o solo espacios) es una búsqueda solo por atributos.
    """

    query: str = Field(default="", description="Texto libre a vectorizar")
    attribute_filters: Optional[FilterGroup] = Field(None)
    metadata_filters: Optional[dict[str, Any]] = Field(
        None, description="Igualdad exacta clave/valor sobre metadata"
    )

    # Umbrales de reputación (None = sin umbral)
    min_reputation_score: Optional[float] = Field(None)
    min_rating_count: Optional[int] = Field(None)
    min_confidence_score: Optional[float] = Field(None)

    # Privacidad
    requesting_user_id: Optional[str] = Field(None, description="None = anónimo")
    enforce_privacy: bool = Field(default=True)

    # Alcance y paginado (None = defaults de settings)
    entity_type: Optional[EntityType] = Field(None)
    limit: Optional[int] = Field(None)
    min_similarity: Optional[float] = Field(None)
    include_entities: bool = Field(default=False)

    @property
    def is_attribute_only(self) -> bool:
        return not self.query or not self.query.strip()

    @property
    def has_reputation_thresholds(self) -> bool:
        return (
            self.min_reputation_score is not None
            or self.min_rating_count is not None
            or self.min_confidence_score is not None
        )


class EntityMatch(_ResultModel):
    """Una entidad encontrada."""

    entity_id: str
    similarity_score: float = Field(..., ge=0, le=1)
    matched_attributes: Optional[dict[str, Any]] = None
    entity_name: str = ""
    entity_type: Optional[EntityType] = None
    entity_last_modified: Optional[datetime] = None
    embedding_dimensions: Optional[int] = None
    entity: Optional[Entity] = None


class SearchMetadata(_ResultModel):
    """Alcance de la búsqueda (siempre presente, incluso sin resultados)."""

    searched_at: datetime
    total_embeddings_searched: int
    candidates_above_threshold: int
    min_similarity: float
    requested_limit: int
    search_duration_ms: float
    attribute_only: bool = False
    pushdown_applied: bool = False


class SearchResult(_ResultModel):
    matches: list[EntityMatch] = Field(default_factory=list)
    total_matches: int = 0
    metadata: SearchMetadata


class MutualMatch(_ResultModel):
    """Par de entidades que se matchean en ambas direcciones."""

    entity_a_id: str
    entity_b_id: str
    entity_a_type: Optional[EntityType] = None
    entity_b_type: Optional[EntityType] = None
    entity_a_name: str = ""
    entity_b_name: str = ""
    a_to_b_score: float = Field(..., alias="aToB_Score", ge=0, le=1)
    b_to_a_score: float = Field(..., alias="bToA_Score", ge=0, le=1)
    mutual_score: float = Field(..., ge=0, le=1)
    match_type: Literal["Mutual"] = "Mutual"
    detected_at: datetime
    matched_attributes: Optional[dict[str, Any]] = None


class MutualMatchMetadata(_ResultModel):
    searched_at: datetime
    source_entity_type: Optional[EntityType] = None
    target_entity_type: Optional[EntityType] = None
    candidates_evaluated: int
    reverse_lookups: int
    search_duration_ms: float
    min_similarity: float
    early_terminated: bool = False


class MutualMatchResult(_ResultModel):
    matches: list[MutualMatch] = Field(default_factory=list)
    total_mutual_matches: int = 0
    metadata: MutualMatchMetadata
