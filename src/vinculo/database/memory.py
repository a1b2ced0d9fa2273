"""
Stores en memoria con la misma interfaz que los repositorios de Supabase.

Para tests, demos y procesos batch chicos. No son thread-safe, pero sí
seguros entre tareas de un mismo event loop: ningún método cede el
control a mitad de una modificación.
"""

from typing import Iterable, Optional

from vinculo.matching.filters import AttributeFilterEvaluator
from vinculo.models import (
    EmbeddingRecord,
    EmbeddingStatus,
    Entity,
    EntityReputation,
    EntityType,
    FilterGroup,
)


class InMemoryEntityStore:
    """Entidades indexadas por ID."""

    def __init__(
        self,
        entities: Optional[Iterable[Entity]] = None,
        filter_evaluator: Optional[AttributeFilterEvaluator] = None,
    ):
        self._entities: dict[str, Entity] = {}
        self._evaluator = filter_evaluator or AttributeFilterEvaluator()
        for entity in entities or []:
            self._entities[entity.id] = entity

    def __len__(self) -> int:
        return len(self._entities)

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    async def list_entities(
        self,
        ids: Optional[Iterable[str]] = None,
        entity_type: Optional[EntityType] = None,
        filters: Optional[FilterGroup] = None,
    ) -> list[Entity]:
        if ids is None:
            candidates = list(self._entities.values())
        else:
            candidates = [
                self._entities[i] for i in dict.fromkeys(ids) if i in self._entities
            ]

        result = []
        for entity in candidates:
            if entity_type is not None and entity.entity_type != entity_type:
                continue
            # Equivale al filtro del store: sin control de privacidad
            if filters is not None and not self._evaluator.matches(
                entity, filters, enforce_privacy=False
            ):
                continue
            result.append(entity)
        return result

    async def upsert(self, entity: Entity) -> Entity:
        self._entities[entity.id] = entity
        return entity

    async def delete(self, entity_id: str) -> bool:
        return self._entities.pop(entity_id, None) is not None


class InMemoryEmbeddingStore:
    """Embeddings indexados por entity_id (uno por entidad)."""

    def __init__(self, records: Optional[Iterable[EmbeddingRecord]] = None):
        self._records: dict[str, EmbeddingRecord] = {}
        for record in records or []:
            self._records[record.entity_id] = record

    def __len__(self) -> int:
        return len(self._records)

    async def get_embedding(self, entity_id: str) -> Optional[EmbeddingRecord]:
        return self._records.get(entity_id)

    async def get_embeddings_by_status(
        self,
        status: EmbeddingStatus,
        limit: Optional[int] = None,
        entity_type: Optional[EntityType] = None,
        entity_ids: Optional[Iterable[str]] = None,
    ) -> list[EmbeddingRecord]:
        wanted = set(entity_ids) if entity_ids is not None else None

        result = []
        for entity_id in sorted(self._records):
            record = self._records[entity_id]
            if record.status != status:
                continue
            # Sin tipo desnormalizado: se conserva y decide la entidad
            if entity_type is not None and record.entity_type not in (None, entity_type):
                continue
            if wanted is not None and entity_id not in wanted:
                continue
            result.append(record)

        return result if limit is None else result[:limit]

    async def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        self._records[record.entity_id] = record
        return record

    async def delete(self, entity_id: str) -> bool:
        return self._records.pop(entity_id, None) is not None

    async def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in EmbeddingStatus}
        for record in self._records.values():
            counts[record.status.value] += 1
        return counts


class InMemoryReputationStore:
    """Reputaciones indexadas por entity_id."""

    def __init__(self, reputations: Optional[Iterable[EntityReputation]] = None):
        self._reputations = {r.entity_id: r for r in reputations or []}

    async def get_reputations(
        self, entity_ids: Iterable[str]
    ) -> dict[str, EntityReputation]:
        return {
            entity_id: self._reputations[entity_id]
            for entity_id in entity_ids
            if entity_id in self._reputations
        }

    async def upsert(self, reputation: EntityReputation) -> EntityReputation:
        self._reputations[reputation.entity_id] = reputation
        return reputation
