"""
Repositorios para operaciones CRUD en Supabase.

Cada repositorio maneja una tabla específica. Los métodos son async:
cada request corre en un thread para no bloquear el event loop.
"""

from typing import Iterable, Optional

import structlog

from vinculo.config import get_settings
from vinculo.database.pushdown import build_postgrest_filter
from vinculo.database.supabase_client import get_supabase_client, SupabaseClient
from vinculo.models import (
    EmbeddingRecord,
    EmbeddingStatus,
    Entity,
    EntityReputation,
    EntityType,
    FilterGroup,
)

logger = structlog.get_logger()

# Tope de ids por request para no exceder el largo de la URL
_IN_CHUNK_SIZE = 200


def _chunks(ids: list[str], size: int = _IN_CHUNK_SIZE):
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class BaseRepository:
    """Clase base para repositorios."""

    def __init__(
        self,
        client: Optional[SupabaseClient] = None,
        page_size: Optional[int] = None,
    ):
        self._client = client or get_supabase_client()
        self.page_size = page_size or get_settings().supabase_page_size

    @property
    def client(self) -> SupabaseClient:
        return self._client

    async def _fetch_all(self, build, limit: Optional[int] = None) -> list[dict]:
        """
        Lee todas las filas de un query paginando con .range().

        PostgREST corta cada respuesta en max-rows: se piden páginas
        hasta recibir una incompleta (o hasta juntar `limit` filas).

        Args:
            build: Callable que arma el query (ordenado) desde cero
            limit: Máximo de filas (None = todas)
        """
        rows: list[dict] = []
        start = 0
        while limit is None or len(rows) < limit:
            size = self.page_size if limit is None else min(self.page_size, limit - len(rows))
            response = await self.client.execute(build().range(start, start + size - 1))
            page = response.data or []
            rows.extend(page)
            if len(page) < size:
                break
            start += size
        return rows


class EntityRepository(BaseRepository):
    """Repositorio de entidades (tabla entities)."""

    TABLE = "entities"

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        """Obtiene una entidad por su ID."""
        response = await self.client.execute(
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", entity_id)
            .limit(1)
        )
        return Entity.from_db(response.data[0]) if response.data else None

    async def list_entities(
        self,
        ids: Optional[Iterable[str]] = None,
        entity_type: Optional[EntityType] = None,
        filters: Optional[FilterGroup] = None,
    ) -> list[Entity]:
        """
        Lista entidades por IDs, tipo y/o filtros delegados.

        Args:
            ids: Restringir a estos IDs (None = sin restricción)
            entity_type: Restringir a un tipo
            filters: Árbol push-downable, traducido a PostgREST

        Returns:
            Lista de Entity
        """
        expression = build_postgrest_filter(filters)

        def build():
            query = self.client.table(self.TABLE).select("*")
            if entity_type is not None:
                query = query.eq("entity_type", entity_type.value)
            if expression:
                query = query.or_(expression)
            return query.order("id")

        if ids is None:
            rows = await self._fetch_all(build)
        else:
            rows = []
            for chunk in _chunks(list(dict.fromkeys(ids))):
                response = await self.client.execute(build().in_("id", chunk))
                rows.extend(response.data or [])

        entities = []
        for row in rows:
            try:
                entities.append(Entity.from_db(row))
            except ValueError as e:
                logger.warning("Entidad inválida en la base", entity_id=row.get("id"), error=str(e))

        logger.debug(
            "Entidades listadas",
            count=len(entities),
            entity_type=entity_type.value if entity_type else None,
            pushdown=expression,
        )
        return entities

    async def upsert(self, entity: Entity) -> dict:
        """
        Inserta o actualiza una entidad.

        Returns:
            El registro insertado/actualizado
        """
        response = await self.client.execute(
            self.client.table(self.TABLE).upsert(entity.to_db_dict(), on_conflict="id")
        )
        logger.info(
            "Entidad upserted",
            entity_id=entity.id,
            entity_type=entity.entity_type.value,
        )
        return response.data[0] if response.data else {}

    async def delete(self, entity_id: str) -> bool:
        """Elimina una entidad."""
        response = await self.client.execute(
            self.client.table(self.TABLE).delete().eq("id", entity_id)
        )
        return len(response.data) > 0


class EmbeddingRepository(BaseRepository):
    """Repositorio de embeddings (tabla entity_embeddings)."""

    TABLE = "entity_embeddings"

    async def get_embedding(self, entity_id: str) -> Optional[EmbeddingRecord]:
        """Obtiene el embedding de una entidad."""
        response = await self.client.execute(
            self.client.table(self.TABLE)
            .select("*")
            .eq("entity_id", entity_id)
            .limit(1)
        )
        return EmbeddingRecord.from_db(response.data[0]) if response.data else None

    async def get_embeddings_by_status(
        self,
        status: EmbeddingStatus,
        limit: Optional[int] = None,
        entity_type: Optional[EntityType] = None,
        entity_ids: Optional[Iterable[str]] = None,
    ) -> list[EmbeddingRecord]:
        """
        Obtiene embeddings en un estado dado.

        Args:
            status: Estado buscado
            limit: Máximo de registros (None = todos)
            entity_type: Restringir a un tipo de entidad
            entity_ids: Restringir a estas entidades (vacío = ninguna)

        Returns:
            Lista de EmbeddingRecord
        """

        def build():
            query = (
                self.client.table(self.TABLE)
                .select("*")
                .eq("status", status.value)
            )
            if entity_type is not None:
                # Los registros sin tipo desnormalizado se validan contra la entidad
                query = query.or_(
                    f"entity_type.eq.{entity_type.value},entity_type.is.null"
                )
            return query.order("entity_id")

        if entity_ids is None:
            rows = await self._fetch_all(build, limit)
        else:
            rows = []
            for chunk in _chunks(list(dict.fromkeys(entity_ids))):
                response = await self.client.execute(build().in_("entity_id", chunk))
                rows.extend(response.data or [])
            if limit is not None:
                rows = rows[:limit]

        records = []
        for row in rows:
            try:
                records.append(EmbeddingRecord.from_db(row))
            except ValueError as e:
                logger.warning(
                    "Embedding inválido en la base",
                    entity_id=row.get("entity_id"),
                    error=str(e),
                )

        return records

    async def upsert(self, record: EmbeddingRecord) -> dict:
        """Inserta o actualiza el embedding de una entidad."""
        response = await self.client.execute(
            self.client.table(self.TABLE).upsert(
                record.to_db_dict(), on_conflict="entity_id"
            )
        )
        logger.debug(
            "Embedding upserted",
            entity_id=record.entity_id,
            status=record.status.value,
        )
        return response.data[0] if response.data else {}

    async def delete(self, entity_id: str) -> bool:
        """Elimina el embedding de una entidad."""
        response = await self.client.execute(
            self.client.table(self.TABLE).delete().eq("entity_id", entity_id)
        )
        return len(response.data) > 0

    async def count_by_status(self) -> dict[str, int]:
        """Cantidad de embeddings por estado."""
        counts = {}
        for status in EmbeddingStatus:
            response = await self.client.execute(
                self.client.table(self.TABLE)
                .select("id", count="exact")
                .eq("status", status.value)
            )
            counts[status.value] = response.count or 0
        return counts


class ReputationRepository(BaseRepository):
    """Repositorio de reputación (tabla entity_reputations)."""

    TABLE = "entity_reputations"

    async def get_reputations(
        self, entity_ids: Iterable[str]
    ) -> dict[str, EntityReputation]:
        """
        Obtiene la reputación de varias entidades.

        Returns:
            Dict entity_id -> EntityReputation (las que no tienen, no aparecen)
        """
        reputations = {}
        for chunk in _chunks(list(dict.fromkeys(entity_ids))):
            response = await self.client.execute(
                self.client.table(self.TABLE).select("*").in_("entity_id", chunk)
            )
            for row in response.data or []:
                reputation = EntityReputation.model_validate(row)
                reputations[reputation.entity_id] = reputation
        return reputations
