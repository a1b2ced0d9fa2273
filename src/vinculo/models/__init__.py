"""
Modelos de datos del sistema.

- Entidades y privacidad: Entity, PrivacySettings
- Embeddings: EmbeddingRecord
- Filtros: FilterGroup, AttributeFilter
- Consultas y resultados: SearchQuery, SearchResult, MutualMatchResult
"""

from vinculo.models.entity import (
    Entity,
    EntityType,
    FieldVisibility,
    PrivacySettings,
)
from vinculo.models.attributes import NOT_FOUND, AttributeValue, resolve_path
from vinculo.models.embedding import EmbeddingRecord, EmbeddingStatus
from vinculo.models.filters import (
    AttributeFilter,
    FilterGroup,
    FilterNode,
    FilterOperator,
    LogicalOperator,
)
from vinculo.models.reputation import EntityReputation
from vinculo.models.search import (
    EntityMatch,
    MutualMatch,
    MutualMatchMetadata,
    MutualMatchResult,
    SearchMetadata,
    SearchQuery,
    SearchResult,
)

__all__ = [
    # Entidades
    "Entity",
    "EntityType",
    "FieldVisibility",
    "PrivacySettings",
    "NOT_FOUND",
    "AttributeValue",
    "resolve_path",
    # Embeddings
    "EmbeddingRecord",
    "EmbeddingStatus",
    # Filtros
    "AttributeFilter",
    "FilterGroup",
    "FilterNode",
    "FilterOperator",
    "LogicalOperator",
    # Reputación
    "EntityReputation",
    # Búsqueda
    "SearchQuery",
    "SearchResult",
    "SearchMetadata",
    "EntityMatch",
    "MutualMatch",
    "MutualMatchMetadata",
    "MutualMatchResult",
]
