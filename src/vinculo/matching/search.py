"""
Motor de búsqueda por similitud.

Flujo por llamada (sin estado entre llamadas):
1. Fetch: embeddings Generated (opcionalmente acotados por tipo o por
   filtros delegados al store)
2. Score: coseno contra el vector de la query y corte por min_similarity
3. Filter: atributos (con privacidad), metadata y reputación
4. Rank: similitud desc, última modificación desc, entity_id asc
5. Paginate: primeros `limit`
6. Emit: metadata de alcance, incluso sin resultados

Es un scan lineal exhaustivo: no hay índice ANN.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from vinculo.config import Settings, get_settings
from vinculo.errors import (
    EmbeddingUnavailableError,
    InvalidInputError,
    SourceNotFoundError,
)
from vinculo.matching.filters import AttributeFilterEvaluator, values_equal
from vinculo.matching.protocols import (
    Embedder,
    EmbeddingStore,
    EntityStore,
    ReputationStore,
)
from vinculo.matching.vector_math import clamp_score, cosine_similarity
from vinculo.models import (
    EmbeddingStatus,
    Entity,
    EntityMatch,
    EntityType,
    FilterGroup,
    SearchMetadata,
    SearchQuery,
    SearchResult,
)

logger = structlog.get_logger()

_METADATA_NUMERIC_TOLERANCE = 1e-4


@dataclass
class _Candidate:
    """Candidato en proceso (mutable hasta armar el EntityMatch)."""

    entity_id: str
    score: float
    dimensions: int
    entity: Optional[Entity] = None
    matched_attributes: dict[str, Any] = field(default_factory=dict)


def matches_metadata(
    entity_metadata: Optional[dict[str, Any]], filters: dict[str, Any]
) -> bool:
    """
    Igualdad exacta clave/valor sobre la metadata de una entidad.

    Los dicts anidados se comparan recursivamente. Una entidad sin
    metadata no cumple ningún filtro.
    """
    if not entity_metadata:
        return False

    for key, expected in filters.items():
        if key not in entity_metadata:
            return False

        actual = entity_metadata[key]

        if isinstance(actual, dict) and isinstance(expected, dict):
            if not matches_metadata(actual, expected):
                return False
            continue

        if (
            isinstance(actual, (int, float))
            and isinstance(expected, (int, float))
            and not isinstance(actual, bool)
            and not isinstance(expected, bool)
        ):
            if abs(actual - expected) >= _METADATA_NUMERIC_TOLERANCE:
                return False
            continue

        if actual is None and expected is None:
            continue

        if not values_equal(actual, expected):
            return False

    return True


class SimilaritySearchEngine:
    """
    Búsqueda híbrida: similitud semántica + filtros estructurados.

    Dos entradas que comparten el mismo pipeline:
    - search(): a partir de un texto libre (vacío = solo atributos)
    - find_similar(): a partir del embedding guardado de una entidad
    """

    def __init__(
        self,
        embedding_store: Optional[EmbeddingStore] = None,
        entity_store: Optional[EntityStore] = None,
        embedder: Optional[Embedder] = None,
        reputation_store: Optional[ReputationStore] = None,
        filter_evaluator: Optional[AttributeFilterEvaluator] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()

        if embedding_store is None or entity_store is None:
            from vinculo.database import EmbeddingRepository, EntityRepository

            embedding_store = embedding_store or EmbeddingRepository()
            entity_store = entity_store or EntityRepository()

        self.embedding_store = embedding_store
        self.entity_store = entity_store
        self.reputation_store = reputation_store
        self.filter_evaluator = filter_evaluator or AttributeFilterEvaluator()
        self._embedder = embedder

    @property
    def embedder(self) -> Embedder:
        """El generador de embeddings se crea recién cuando hace falta."""
        if self._embedder is None:
            from vinculo.analysis import EmbeddingGenerator

            self._embedder = EmbeddingGenerator()
        return self._embedder

    async def search(self, query: SearchQuery) -> SearchResult:
        """
        Busca entidades a partir de un texto libre.

        Args:
            query: Texto, filtros, umbrales y alcance de la búsqueda

        Returns:
            SearchResult con matches ordenados y metadata

        Raises:
            InvalidInputError: limit o min_similarity inválidos
            EmbeddingUnavailableError: no se pudo vectorizar el texto
        """
        started = time.perf_counter()
        limit, min_similarity = self._resolve_limits(query.limit, query.min_similarity)
        self._check_reputation_support(query)

        logger.info(
            "Buscando entidades",
            query=query.query[:50],
            limit=limit,
            min_similarity=min_similarity,
            attribute_only=query.is_attribute_only,
            has_attr_filters=bool(query.attribute_filters and query.attribute_filters.has_filters),
            has_metadata_filters=bool(query.metadata_filters),
        )

        query_vector = None
        if not query.is_attribute_only:
            query_vector = await self._embed_query(query.query)

        return await self._execute(
            query,
            reference_vector=query_vector,
            exclude_entity_id=None,
            limit=limit,
            min_similarity=min_similarity,
            started=started,
        )

    async def find_similar(
        self,
        entity_id: str,
        *,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
        entity_type: Optional[EntityType] = None,
        attribute_filters: Optional[FilterGroup] = None,
        metadata_filters: Optional[dict[str, Any]] = None,
        requesting_user_id: Optional[str] = None,
        enforce_privacy: bool = True,
        include_entities: bool = False,
    ) -> SearchResult:
        """
        Busca entidades similares a una entidad existente.

        La entidad de referencia nunca aparece en sus propios resultados.

        Raises:
            SourceNotFoundError: la entidad no tiene embedding Generated
        """
        started = time.perf_counter()
        limit, min_similarity = self._resolve_limits(limit, min_similarity)

        reference = await self.embedding_store.get_embedding(entity_id)
        if reference is None:
            raise SourceNotFoundError(entity_id, "sin embedding")
        if not reference.is_usable:
            raise SourceNotFoundError(
                entity_id, f"embedding en estado {reference.status.value}"
            )

        query = SearchQuery(
            attribute_filters=attribute_filters,
            metadata_filters=metadata_filters,
            requesting_user_id=requesting_user_id,
            enforce_privacy=enforce_privacy,
            entity_type=entity_type,
            include_entities=include_entities,
        )

        logger.debug(
            "Buscando entidades similares",
            entity_id=entity_id,
            limit=limit,
            min_similarity=min_similarity,
            entity_type=entity_type.value if entity_type else None,
        )

        return await self._execute(
            query,
            reference_vector=reference.embedding,
            exclude_entity_id=entity_id,
            limit=limit,
            min_similarity=min_similarity,
            started=started,
        )

    # ============= PIPELINE =============

    async def _execute(
        self,
        query: SearchQuery,
        reference_vector: Optional[list[float]],
        exclude_entity_id: Optional[str],
        limit: int,
        min_similarity: float,
        started: float,
    ) -> SearchResult:
        attribute_only = reference_vector is None
        filters = query.attribute_filters
        has_attr_filters = filters is not None and filters.has_filters

        # 1. Fetch
        prefetched: Optional[dict[str, Entity]] = None
        candidate_ids: Optional[set[str]] = None
        pushdown_applied = False

        if (
            has_attr_filters
            and not query.enforce_privacy
            and self.settings.filter_pushdown_enabled
            and self.filter_evaluator.is_push_downable(filters)
        ):
            entities = await self.entity_store.list_entities(
                entity_type=query.entity_type, filters=filters
            )
            prefetched = {e.id: e for e in entities}
            candidate_ids = set(prefetched)
            pushdown_applied = True
            logger.debug("Filtros delegados al store", candidates=len(candidate_ids))

        records = await self.embedding_store.get_embeddings_by_status(
            EmbeddingStatus.GENERATED,
            entity_type=query.entity_type,
            entity_ids=candidate_ids,
        )
        records = [
            r for r in records if r.is_usable and r.entity_id != exclude_entity_id
        ]

        # 2. Score
        candidates: list[_Candidate] = []
        for record in records:
            if attribute_only:
                candidates.append(_Candidate(record.entity_id, 0.0, len(record.embedding)))
                continue

            try:
                score = cosine_similarity(reference_vector, record.embedding)
            except InvalidInputError as e:
                logger.warning(
                    "Embedding incompatible, se descarta",
                    entity_id=record.entity_id,
                    error=str(e),
                )
                continue

            if score >= min_similarity:
                candidates.append(_Candidate(record.entity_id, score, len(record.embedding)))

        above_threshold = len(candidates)

        # 3. Filter
        survivors = await self._apply_filters(
            candidates, query, prefetched, has_attr_filters
        )

        # 4. Rank
        survivors.sort(key=self._rank_key(attribute_only))

        # 5. Paginate
        page = survivors[:limit]

        matches = [self._to_match(c, query, has_attr_filters) for c in page]

        duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "Búsqueda completada",
            scanned=len(records),
            above_threshold=above_threshold,
            matches=len(matches),
            duration_ms=round(duration_ms, 2),
        )

        # 6. Emit
        return SearchResult(
            matches=matches,
            total_matches=len(matches),
            metadata=SearchMetadata(
                searched_at=datetime.now(timezone.utc),
                total_embeddings_searched=len(records),
                candidates_above_threshold=above_threshold,
                min_similarity=0.0 if attribute_only else min_similarity,
                requested_limit=limit,
                search_duration_ms=duration_ms,
                attribute_only=attribute_only,
                pushdown_applied=pushdown_applied,
            ),
        )

    async def _apply_filters(
        self,
        candidates: list[_Candidate],
        query: SearchQuery,
        prefetched: Optional[dict[str, Entity]],
        has_attr_filters: bool,
    ) -> list[_Candidate]:
        if not candidates:
            return []

        ids = [c.entity_id for c in candidates]

        if prefetched is not None:
            entities = prefetched
        else:
            entities = {e.id: e for e in await self.entity_store.list_entities(ids=ids)}

        reputations = {}
        if query.has_reputation_thresholds:
            reputations = await self.reputation_store.get_reputations(ids)

        survivors = []
        for candidate in candidates:
            try:
                entity = entities.get(candidate.entity_id)
                if entity is None:
                    logger.warning(
                        "Entidad no encontrada durante el filtrado",
                        entity_id=candidate.entity_id,
                    )
                    continue

                if not entity.is_searchable:
                    continue

                if query.entity_type is not None and entity.entity_type != query.entity_type:
                    continue

                if has_attr_filters and not self.filter_evaluator.matches(
                    entity,
                    query.attribute_filters,
                    query.requesting_user_id,
                    query.enforce_privacy,
                ):
                    continue

                if query.metadata_filters and not matches_metadata(
                    entity.metadata, query.metadata_filters
                ):
                    continue

                if query.has_reputation_thresholds:
                    reputation = reputations.get(candidate.entity_id)
                    if reputation is None or not reputation.meets(
                        query.min_reputation_score,
                        query.min_rating_count,
                        query.min_confidence_score,
                    ):
                        continue

                if has_attr_filters:
                    candidate.matched_attributes = (
                        self.filter_evaluator.extract_matched_attributes(
                            entity,
                            query.attribute_filters,
                            query.requesting_user_id,
                            query.enforce_privacy,
                        )
                    )

                candidate.entity = entity
                survivors.append(candidate)

            except Exception as e:
                logger.error(
                    "Error evaluando filtros de entidad",
                    entity_id=candidate.entity_id,
                    error=str(e),
                )

        return survivors

    @staticmethod
    def _rank_key(attribute_only: bool):
        def key(candidate: _Candidate):
            modified = candidate.entity.last_modified.timestamp()
            primary = len(candidate.matched_attributes) if attribute_only else candidate.score
            return (-primary, -modified, candidate.entity_id)

        return key

    @staticmethod
    def _to_match(
        candidate: _Candidate, query: SearchQuery, has_attr_filters: bool
    ) -> EntityMatch:
        entity = candidate.entity
        full_entity = None
        if query.include_entities:
            full_entity = (
                entity.redacted_for(query.requesting_user_id)
                if query.enforce_privacy
                else entity
            )

        return EntityMatch(
            entity_id=candidate.entity_id,
            similarity_score=clamp_score(candidate.score),
            matched_attributes=candidate.matched_attributes if has_attr_filters else None,
            entity_name=entity.name,
            entity_type=entity.entity_type,
            entity_last_modified=entity.last_modified,
            embedding_dimensions=candidate.dimensions,
            entity=full_entity,
        )

    # ============= HELPERS =============

    def _resolve_limits(
        self, limit: Optional[int], min_similarity: Optional[float]
    ) -> tuple[int, float]:
        limit = self.settings.default_search_limit if limit is None else limit
        if limit < 1:
            raise InvalidInputError(f"limit debe ser >= 1 (recibido {limit})")
        if limit > self.settings.max_search_limit:
            logger.warning(
                "limit supera el máximo, se recorta",
                limit=limit,
                max_limit=self.settings.max_search_limit,
            )
            limit = self.settings.max_search_limit

        if min_similarity is None:
            min_similarity = self.settings.default_min_similarity
        if not -1.0 <= min_similarity <= 1.0:
            raise InvalidInputError(
                f"min_similarity debe estar en [-1, 1] (recibido {min_similarity})"
            )

        return limit, min_similarity

    def _check_reputation_support(self, query: SearchQuery) -> None:
        if query.has_reputation_thresholds and self.reputation_store is None:
            raise InvalidInputError(
                "Los umbrales de reputación requieren un ReputationStore configurado"
            )

    async def _embed_query(self, text: str) -> list[float]:
        try:
            vector = await self.embedder.embed_text(text)
        except EmbeddingUnavailableError:
            raise
        except Exception as e:
            logger.error("Error generando embedding de query", query=text[:50], error=str(e))
            raise EmbeddingUnavailableError(f"No se pudo vectorizar la query: {e}") from e

        if not vector:
            raise EmbeddingUnavailableError("El embedding de la query vino vacío")

        logger.debug("Embedding de query generado", dimensions=len(vector))
        return list(vector)
