"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> vinculo/ -> src/ -> raíz del proyecto
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase
    supabase_url: str = Field(..., description="URL del proyecto Supabase")
    supabase_key: str = Field(..., description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para operaciones admin"
    )
    supabase_page_size: int = Field(
        1000, ge=1, description="Filas por request (no mayor que max-rows de PostgREST)"
    )

    # Embeddings (Gemini)
    gemini_api_key: Optional[str] = Field(None, description="API key de Google Gemini")
    embedding_model: str = Field(
        "gemini-embedding-001", description="Modelo de embeddings a usar"
    )
    embedding_dimensions: int = Field(
        768, ge=1, description="Dimensión declarada de los vectores (768, 1536, 3072)"
    )
    embedding_max_retries: int = Field(
        3, ge=1, description="Reintentos antes de dejar un embedding en Failed"
    )
    embedding_batch_size: int = Field(
        50, ge=1, description="Embeddings pendientes a procesar por ejecución"
    )

    # Búsqueda por similitud
    default_min_similarity: float = Field(
        0.5, ge=-1.0, le=1.0, description="Similitud mínima por defecto"
    )
    default_search_limit: int = Field(10, ge=1, description="Resultados por defecto")
    max_search_limit: int = Field(1000, ge=1, description="Tope de resultados por búsqueda")
    filter_pushdown_enabled: bool = Field(
        True, description="Delegar filtros simples a Supabase cuando sea posible"
    )

    # Matching mutuo
    mutual_min_similarity: float = Field(
        0.8, ge=-1.0, le=1.0, description="Similitud mínima en ambas direcciones"
    )
    mutual_default_limit: int = Field(50, ge=1, description="Máximo de matches mutuos")
    mutual_over_fetch_factor: int = Field(
        3, ge=1, description="Multiplicador de candidatos en la búsqueda forward"
    )
    mutual_reverse_lookup_limit: int = Field(
        100, ge=1, description="Top-N revisado en cada búsqueda reversa"
    )
    mutual_max_concurrency: int = Field(
        10, ge=1, description="Búsquedas reversas simultáneas"
    )
    mutual_early_termination: bool = Field(
        False, description="Cancelar búsquedas reversas al alcanzar el límite"
    )

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()
