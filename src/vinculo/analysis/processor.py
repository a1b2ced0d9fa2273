"""
Procesamiento de embeddings pendientes.

Ciclo de vida de un EmbeddingRecord:
1. queue_entity: se registra el resumen de la entidad como Pending
   (solo si el resumen cambió)
2. process_pending: se vectoriza el resumen
   - OK -> Generated (vector, dimensiones, modelo, fecha)
   - Error -> Failed (retry_count + 1, mensaje de error)
3. Los Failed se reintentan mientras retry_count < embedding_max_retries
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from vinculo.config import Settings, get_settings
from vinculo.models import EmbeddingRecord, EmbeddingStatus, Entity

logger = structlog.get_logger()


class EmbeddingProcessor:
    """Lleva los embeddings de Pending a Generated o Failed."""

    def __init__(
        self,
        embedding_store=None,
        embedder=None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()

        if embedding_store is None:
            from vinculo.database import EmbeddingRepository

            embedding_store = EmbeddingRepository()

        if embedder is None:
            from vinculo.analysis.embeddings import EmbeddingGenerator

            embedder = EmbeddingGenerator()

        self.embedding_store = embedding_store
        self.embedder = embedder

    async def queue_entity(self, entity: Entity, summary: str) -> EmbeddingRecord:
        """
        Registra el resumen de una entidad para vectorizar.

        Si el resumen no cambió respecto del registrado, no hace nada.

        Args:
            entity: Entidad dueña del resumen
            summary: Texto a vectorizar

        Returns:
            El registro vigente (nuevo o existente)
        """
        existing = await self.embedding_store.get_embedding(entity.id)

        if existing is not None and not existing.summary_changed(summary):
            logger.debug(
                "Resumen sin cambios, se mantiene el embedding",
                entity_id=entity.id,
                status=existing.status.value,
            )
            return existing

        record = EmbeddingRecord(
            entity_id=entity.id,
            entity_type=entity.entity_type,
            status=EmbeddingStatus.PENDING,
            entity_summary=summary,
            summary_hash=EmbeddingRecord.compute_hash(summary),
            entity_last_modified=entity.last_modified,
        )
        await self.embedding_store.upsert(record)

        logger.info(
            "Entidad encolada para embedding",
            entity_id=entity.id,
            entity_type=entity.entity_type.value,
            replaced=existing is not None,
        )
        return record

    async def process_pending(self, batch_size: Optional[int] = None) -> dict[str, int]:
        """
        Vectoriza los embeddings pendientes (y los fallidos reintentables).

        Args:
            batch_size: Máximo de registros a procesar (None = settings)

        Returns:
            Estadísticas: processed, generated, failed, skipped
        """
        batch_size = batch_size or self.settings.embedding_batch_size
        max_retries = self.settings.embedding_max_retries

        stats = {"processed": 0, "generated": 0, "failed": 0, "skipped": 0}

        pending = await self.embedding_store.get_embeddings_by_status(
            EmbeddingStatus.PENDING, limit=batch_size
        )
        remaining = batch_size - len(pending)
        failed = []
        if remaining > 0:
            failed = await self.embedding_store.get_embeddings_by_status(
                EmbeddingStatus.FAILED
            )

        retryable = []
        for record in failed:
            if record.retry_count >= max_retries:
                stats["skipped"] += 1
                continue
            retryable.append(record)

        batch = pending + retryable[:max(remaining, 0)]

        logger.info(
            "Procesando embeddings pendientes",
            pending=len(pending),
            retryable=len(retryable),
            batch=len(batch),
        )

        for record in batch:
            stats["processed"] += 1
            updated = await self._process_record(record)
            await self.embedding_store.upsert(updated)

            if updated.status == EmbeddingStatus.GENERATED:
                stats["generated"] += 1
            else:
                stats["failed"] += 1

        logger.info("Procesamiento de embeddings completado", **stats)
        return stats

    async def _process_record(self, record: EmbeddingRecord) -> EmbeddingRecord:
        data: dict[str, Any] = record.model_dump()

        try:
            if not record.entity_summary.strip():
                raise ValueError("La entidad no tiene resumen")

            vector = await self.embedder.embed_text(record.entity_summary)

            data.update(
                embedding=vector,
                dimensions=len(vector),
                embedding_model=getattr(
                    self.embedder, "model_name", self.settings.embedding_model
                ),
                status=EmbeddingStatus.GENERATED,
                summary_hash=EmbeddingRecord.compute_hash(record.entity_summary),
                generated_at=datetime.now(timezone.utc),
                error_message=None,
            )
            logger.debug(
                "Embedding generado",
                entity_id=record.entity_id,
                dimensions=len(vector),
            )

        except Exception as e:
            data.update(
                embedding=None,
                status=EmbeddingStatus.FAILED,
                retry_count=record.retry_count + 1,
                error_message=str(e),
            )
            logger.error(
                "Error generando embedding de entidad",
                entity_id=record.entity_id,
                retry_count=record.retry_count + 1,
                error=str(e),
            )

        return EmbeddingRecord.model_validate(data)
