"""Fixtures compartidas: settings de test, embedder falso, stores en memoria y fábricas de entidades.

Ningún test toca la red: Supabase y Gemini se reemplazan por fakes.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from vinculo.config import Settings, get_settings
from vinculo.database import (
    InMemoryEmbeddingStore,
    InMemoryEntityStore,
    InMemoryReputationStore,
)
from vinculo.errors import EmbeddingUnavailableError
from vinculo.matching import SimilaritySearchEngine
from vinculo.models import (
    EmbeddingRecord,
    EmbeddingStatus,
    Entity,
    EntityType,
    FieldVisibility,
    PrivacySettings,
)

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeEmbedder:
    """Embedder determinístico: texto -> vector configurado."""

    model_name = "fake-embedding"

    def __init__(self, vectors: Optional[dict[str, list[float]]] = None, error: Optional[Exception] = None):
        self.vectors = vectors or {}
        self.error = error
        self.calls: list[str] = []

    async def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if text not in self.vectors:
            raise EmbeddingUnavailableError(f"sin vector para {text!r}")
        return list(self.vectors[text])


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    """Credenciales falsas para cualquier get_settings() implícito."""
    monkeypatch.setenv("SUPABASE_URL", "http://localhost:54321")
    monkeypatch.setenv("SUPABASE_KEY", "test-key")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-key",
        _env_file=None,
    )


@pytest.fixture
def public_privacy():
    def _build(**overrides: FieldVisibility) -> PrivacySettings:
        return PrivacySettings(
            default_visibility=FieldVisibility.PUBLIC,
            field_visibility=dict(overrides),
        )

    return _build


@pytest.fixture
def make_entity():
    """Fábrica de entidades; por defecto todos los campos son públicos."""

    def _build(
        entity_id: str,
        attributes: Optional[dict] = None,
        entity_type: EntityType = EntityType.PERSON,
        minutes: int = 0,
        **kwargs,
    ) -> Entity:
        kwargs.setdefault(
            "privacy_settings",
            PrivacySettings(default_visibility=FieldVisibility.PUBLIC),
        )
        kwargs.setdefault("name", entity_id.upper())
        return Entity(
            id=entity_id,
            entity_type=entity_type,
            attributes=attributes or {},
            last_modified=BASE_TIME + timedelta(minutes=minutes),
            **kwargs,
        )

    return _build


@pytest.fixture
def make_record():
    def _build(entity: Entity, vector: list[float]) -> EmbeddingRecord:
        return EmbeddingRecord(
            entity_id=entity.id,
            entity_type=entity.entity_type,
            embedding=vector,
            dimensions=len(vector),
            status=EmbeddingStatus.GENERATED,
            entity_summary=f"resumen de {entity.id}",
            entity_last_modified=entity.last_modified,
        )

    return _build


@pytest.fixture
def build_engine(settings, make_record):
    """Arma un SimilaritySearchEngine sobre stores en memoria.

    Recibe pares (entidad, vector); un vector None deja a la entidad sin embedding.
    """

    def _build(pairs, embedder=None, reputations=None, engine_settings=None):
        entities = [entity for entity, _ in pairs]
        records = [make_record(entity, vector) for entity, vector in pairs if vector is not None]
        return SimilaritySearchEngine(
            embedding_store=InMemoryEmbeddingStore(records),
            entity_store=InMemoryEntityStore(entities),
            embedder=embedder or FakeEmbedder(),
            reputation_store=InMemoryReputationStore(reputations) if reputations is not None else None,
            settings=engine_settings or settings,
        )

    return _build


@pytest.fixture
def fake_embedder_cls():
    return FakeEmbedder
