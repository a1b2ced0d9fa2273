"""
Descubrimiento de matches mutuos.

A matchea con B solo si B aparece en la búsqueda de A y A aparece
en la búsqueda de B, ambos por encima del mismo umbral.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from vinculo.config import Settings, get_settings
from vinculo.errors import InvalidInputError
from vinculo.matching.protocols import EntityStore
from vinculo.matching.search import SimilaritySearchEngine
from vinculo.matching.vector_math import clamp_score
from vinculo.models import (
    EntityMatch,
    EntityType,
    MutualMatch,
    MutualMatchMetadata,
    MutualMatchResult,
)

logger = structlog.get_logger()

ScoringFunction = Callable[[float, float], float]


def average_score(a_to_b: float, b_to_a: float) -> float:
    """Promedio de ambas direcciones (default)."""
    return (a_to_b + b_to_a) / 2


def min_score(a_to_b: float, b_to_a: float) -> float:
    """Variante conservadora: la dirección más débil manda."""
    return min(a_to_b, b_to_a)


class MutualMatchEngine:
    """
    Orquesta la búsqueda forward y las búsquedas reverse concurrentes.

    Las búsquedas reverse corren en paralelo acotadas por un semáforo;
    los resultados se juntan en la corrutina coordinadora.
    """

    def __init__(
        self,
        search_engine: Optional[SimilaritySearchEngine] = None,
        entity_store: Optional[EntityStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.search_engine = search_engine or SimilaritySearchEngine(settings=self.settings)
        self.entity_store = entity_store or self.search_engine.entity_store

    async def find_mutual_matches(
        self,
        source_entity_id: str,
        min_similarity: Optional[float] = None,
        target_entity_type: Optional[EntityType] = None,
        limit: Optional[int] = None,
        scoring: ScoringFunction = average_score,
    ) -> MutualMatchResult:
        """
        Encuentra entidades que matchean con la fuente en ambas direcciones.

        Args:
            source_entity_id: Entidad de origen (A)
            min_similarity: Umbral para ambas direcciones
            target_entity_type: Tipo de las entidades buscadas (None = todos)
            limit: Máximo de matches mutuos
            scoring: Combina ambos scores en mutual_score

        Returns:
            MutualMatchResult ordenado por mutual_score desc

        Raises:
            SourceNotFoundError: la fuente no tiene embedding Generated
            InvalidInputError: limit o min_similarity inválidos
        """
        started = time.perf_counter()

        if min_similarity is None:
            min_similarity = self.settings.mutual_min_similarity
        if limit is None:
            limit = self.settings.mutual_default_limit
        if limit < 1:
            raise InvalidInputError(f"limit debe ser >= 1 (recibido {limit})")
        if not -1.0 <= min_similarity <= 1.0:
            raise InvalidInputError(
                f"min_similarity debe estar en [-1, 1] (recibido {min_similarity})"
            )

        source = await self.entity_store.get_entity(source_entity_id)
        if source is None:
            logger.warning(
                "Entidad origen sin registro de entidad",
                source_entity_id=source_entity_id,
            )
        source_type = source.entity_type if source else None
        source_name = source.name if source else ""

        logger.info(
            "Buscando matches mutuos",
            source_entity_id=source_entity_id,
            source_type=source_type.value if source_type else None,
            target_type=target_entity_type.value if target_entity_type else None,
            min_similarity=min_similarity,
            limit=limit,
        )

        # Forward: A -> B, con over-fetch para compensar los que no vuelven
        forward = await self.search_engine.find_similar(
            source_entity_id,
            limit=limit * self.settings.mutual_over_fetch_factor,
            min_similarity=min_similarity,
            entity_type=target_entity_type,
        )
        candidates = forward.matches

        logger.debug("Candidatos forward", count=len(candidates))

        # Reverse: B -> A, una tarea por candidato
        semaphore = asyncio.Semaphore(self.settings.mutual_max_concurrency)

        async def reverse_lookup(candidate: EntityMatch) -> tuple[EntityMatch, Optional[float]]:
            try:
                async with semaphore:
                    result = await self.search_engine.find_similar(
                        candidate.entity_id,
                        limit=self.settings.mutual_reverse_lookup_limit,
                        min_similarity=min_similarity,
                        entity_type=source_type,
                    )
            except Exception as e:
                logger.warning(
                    "Error en búsqueda reverse",
                    candidate_id=candidate.entity_id,
                    error=str(e),
                )
                return candidate, None

            for match in result.matches:
                if match.entity_id == source_entity_id:
                    return candidate, match.similarity_score
            return candidate, None

        tasks = [asyncio.create_task(reverse_lookup(c)) for c in candidates]

        mutual_matches: list[MutualMatch] = []
        reverse_lookups = 0
        early_terminated = False
        detected_at = datetime.now(timezone.utc)

        try:
            for next_done in asyncio.as_completed(tasks):
                candidate, b_to_a = await next_done
                reverse_lookups += 1

                if b_to_a is None or b_to_a < min_similarity:
                    continue

                a_to_b = candidate.similarity_score
                mutual_matches.append(
                    MutualMatch(
                        entity_a_id=source_entity_id,
                        entity_b_id=candidate.entity_id,
                        entity_a_type=source_type,
                        entity_b_type=candidate.entity_type,
                        entity_a_name=source_name,
                        entity_b_name=candidate.entity_name,
                        a_to_b_score=a_to_b,
                        b_to_a_score=b_to_a,
                        mutual_score=clamp_score(scoring(a_to_b, b_to_a)),
                        detected_at=detected_at,
                    )
                )

                if (
                    self.settings.mutual_early_termination
                    and len(mutual_matches) >= limit
                ):
                    early_terminated = len(tasks) > reverse_lookups
                    break
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        mutual_matches.sort(key=lambda m: (-m.mutual_score, m.entity_b_id))
        mutual_matches = mutual_matches[:limit]

        duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "Matches mutuos encontrados",
            source_entity_id=source_entity_id,
            candidates=len(candidates),
            reverse_lookups=reverse_lookups,
            mutual=len(mutual_matches),
            early_terminated=early_terminated,
            duration_ms=round(duration_ms, 2),
        )

        return MutualMatchResult(
            matches=mutual_matches,
            total_mutual_matches=len(mutual_matches),
            metadata=MutualMatchMetadata(
                searched_at=datetime.now(timezone.utc),
                source_entity_type=source_type,
                target_entity_type=target_entity_type,
                candidates_evaluated=len(candidates),
                reverse_lookups=reverse_lookups,
                search_duration_ms=duration_ms,
                min_similarity=min_similarity,
                early_terminated=early_terminated,
            ),
        )
