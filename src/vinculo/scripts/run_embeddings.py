"""
Script para generar los embeddings pendientes.

Toma los registros Pending (y los Failed reintentables) y los
vectoriza con Gemini.

Uso:
    python -m vinculo.scripts.run_embeddings
    python -m vinculo.scripts.run_embeddings --limit 20
"""

import argparse
import asyncio
import sys
import warnings
from typing import Optional

import structlog

# Suprimir warnings de cleanup de asyncio en Windows
warnings.filterwarnings("ignore", category=ResourceWarning, message=".*unclosed transport.*")

from vinculo.analysis import EmbeddingProcessor
from vinculo.database import EmbeddingRepository
from vinculo.logging_setup import configure_logging

logger = structlog.get_logger()


async def run_embeddings(limit: Optional[int] = None) -> dict[str, int]:
    """
    Procesa embeddings pendientes.

    Args:
        limit: Máximo de registros a procesar (None = settings)
    """
    repository = EmbeddingRepository()
    processor = EmbeddingProcessor(embedding_store=repository)

    logger.info("Estado inicial de embeddings", **(await repository.count_by_status()))
    return await processor.process_pending(batch_size=limit)


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Genera embeddings pendientes")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Máximo de embeddings a procesar",
    )

    args = parser.parse_args()
    configure_logging()

    try:
        stats = asyncio.run(run_embeddings(limit=args.limit))
        sys.exit(0 if stats["failed"] == 0 else 1)
    except KeyboardInterrupt:
        logger.info("Generación interrumpida por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal generando embeddings", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
