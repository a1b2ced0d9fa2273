"""
Script para ejecutar una búsqueda por similitud.

Combina texto libre y filtros estructurados; un query vacío
es una búsqueda solo por atributos.

Uso:
    python -m vinculo.scripts.run_search --query "departamento luminoso"
    python -m vinculo.scripts.run_search --filters filtros.json --limit 50
    python -m vinculo.scripts.run_search --query "python backend" --type job --no-privacy
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import structlog

from vinculo.database import ReputationRepository
from vinculo.logging_setup import configure_logging
from vinculo.matching import SimilaritySearchEngine
from vinculo.models import EntityType, FilterGroup, SearchQuery, SearchResult

logger = structlog.get_logger()


def load_filters(path: Optional[str]) -> Optional[FilterGroup]:
    """Lee un árbol de filtros desde un archivo JSON."""
    if not path:
        return None
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return FilterGroup.model_validate(data)


async def run_search(query: SearchQuery) -> SearchResult:
    """Ejecuta la búsqueda contra Supabase."""
    reputation_store = ReputationRepository() if query.has_reputation_thresholds else None
    engine = SimilaritySearchEngine(reputation_store=reputation_store)
    return await engine.search(query)


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Busca entidades por similitud y atributos")
    parser.add_argument("--query", default="", help="Texto libre (vacío = solo atributos)")
    parser.add_argument("--filters", help="Archivo JSON con el árbol de filtros")
    parser.add_argument("--limit", type=int, default=None, help="Máximo de resultados")
    parser.add_argument("--min-similarity", type=float, default=None, help="Similitud mínima")
    parser.add_argument(
        "--type",
        choices=[t.value for t in EntityType],
        default=None,
        help="Restringir a un tipo de entidad",
    )
    parser.add_argument("--user", default=None, help="ID del usuario que consulta")
    parser.add_argument("--min-reputation", type=float, default=None, help="Reputación mínima")
    parser.add_argument(
        "--no-privacy",
        action="store_true",
        help="No aplicar visibilidad por campo (uso interno)",
    )
    parser.add_argument(
        "--include-entities",
        action="store_true",
        help="Incluir la entidad (redactada) en cada resultado",
    )

    args = parser.parse_args()
    configure_logging()

    try:
        query = SearchQuery(
            query=args.query,
            attribute_filters=load_filters(args.filters),
            limit=args.limit,
            min_similarity=args.min_similarity,
            entity_type=EntityType(args.type) if args.type else None,
            requesting_user_id=args.user,
            min_reputation_score=args.min_reputation,
            enforce_privacy=not args.no_privacy,
            include_entities=args.include_entities,
        )

        result = asyncio.run(run_search(query))

        logger.info(
            "Búsqueda finalizada",
            matches=result.total_matches,
            scanned=result.metadata.total_embeddings_searched,
        )
        print(result.model_dump_json(by_alias=True, indent=2))
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Búsqueda interrumpida por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en búsqueda", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
