"""
Script para descubrir matches mutuos de una entidad.

Uso:
    python -m vinculo.scripts.run_mutual_matches <entity_id>
    python -m vinculo.scripts.run_mutual_matches <entity_id> --target-type job --limit 20
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from vinculo.errors import SourceNotFoundError
from vinculo.logging_setup import configure_logging
from vinculo.matching import MutualMatchEngine, average_score, min_score
from vinculo.models import EntityType, MutualMatchResult

logger = structlog.get_logger()

SCORING = {
    "average": average_score,
    "min": min_score,
}


async def run_mutual_matches(
    entity_id: str,
    min_similarity: Optional[float] = None,
    target_type: Optional[EntityType] = None,
    limit: Optional[int] = None,
    scoring: str = "average",
) -> MutualMatchResult:
    """Busca matches mutuos contra Supabase."""
    engine = MutualMatchEngine()
    return await engine.find_mutual_matches(
        entity_id,
        min_similarity=min_similarity,
        target_entity_type=target_type,
        limit=limit,
        scoring=SCORING[scoring],
    )


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Encuentra matches mutuos de una entidad")
    parser.add_argument("entity_id", help="ID de la entidad origen")
    parser.add_argument("--min-similarity", type=float, default=None, help="Umbral en ambas direcciones")
    parser.add_argument(
        "--target-type",
        choices=[t.value for t in EntityType],
        default=None,
        help="Tipo de las entidades buscadas",
    )
    parser.add_argument("--limit", type=int, default=None, help="Máximo de matches mutuos")
    parser.add_argument(
        "--scoring",
        choices=sorted(SCORING),
        default="average",
        help="Cómo combinar ambos scores",
    )

    args = parser.parse_args()
    configure_logging()

    try:
        result = asyncio.run(
            run_mutual_matches(
                args.entity_id,
                min_similarity=args.min_similarity,
                target_type=EntityType(args.target_type) if args.target_type else None,
                limit=args.limit,
                scoring=args.scoring,
            )
        )

        logger.info(
            "Matches mutuos completados",
            matches=result.total_mutual_matches,
            candidates=result.metadata.candidates_evaluated,
        )
        print(result.model_dump_json(by_alias=True, indent=2))
        sys.exit(0)

    except SourceNotFoundError as e:
        logger.error("Entidad origen sin embedding", entity_id=e.entity_id)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Búsqueda interrumpida por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en matches mutuos", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
