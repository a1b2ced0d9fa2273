"""
Colaboradores externos que necesita el motor de matching.

Implementaciones: vinculo.database (Supabase y memoria) y
vinculo.analysis.EmbeddingGenerator.
"""

from typing import Iterable, Optional, Protocol

from vinculo.models import (
    EmbeddingRecord,
    EmbeddingStatus,
    Entity,
    EntityReputation,
    EntityType,
    FilterGroup,
)


class Embedder(Protocol):
    async def embed_text(self, text: str) -> list[float]:
        """Vectoriza un texto. Puede lanzar EmbeddingUnavailableError."""
        ...


class EmbeddingStore(Protocol):
    async def get_embedding(self, entity_id: str) -> Optional[EmbeddingRecord]:
        ...

    async def get_embeddings_by_status(
        self,
        status: EmbeddingStatus,
        limit: Optional[int] = None,
        entity_type: Optional[EntityType] = None,
        entity_ids: Optional[Iterable[str]] = None,
    ) -> list[EmbeddingRecord]:
        """entity_type conserva los registros sin tipo: el tipo real se valida contra la entidad."""
        ...


class EntityStore(Protocol):
    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        ...

    async def list_entities(
        self,
        ids: Optional[Iterable[str]] = None,
        entity_type: Optional[EntityType] = None,
        filters: Optional[FilterGroup] = None,
    ) -> list[Entity]:
        """Lista entidades; filters solo recibe árboles push-downables."""
        ...


class ReputationStore(Protocol):
    async def get_reputations(
        self, entity_ids: Iterable[str]
    ) -> dict[str, EntityReputation]:
        ...
