"""
Módulo de base de datos.

Provee acceso a Supabase, stores en memoria y traducción de filtros.
"""

from vinculo.database.supabase_client import get_supabase_client, SupabaseClient
from vinculo.database.repositories import (
    EntityRepository,
    EmbeddingRepository,
    ReputationRepository,
)
from vinculo.database.memory import (
    InMemoryEntityStore,
    InMemoryEmbeddingStore,
    InMemoryReputationStore,
)
from vinculo.database.pushdown import build_postgrest_filter

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "EntityRepository",
    "EmbeddingRepository",
    "ReputationRepository",
    "InMemoryEntityStore",
    "InMemoryEmbeddingStore",
    "InMemoryReputationStore",
    "build_postgrest_filter",
]
