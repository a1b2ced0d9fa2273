"""Tests de EmbeddingRecord: invariantes de estado, hash del resumen y parseo de pgvector."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from vinculo.models import EmbeddingRecord, EmbeddingStatus, EntityType


class TestInvariants:
    def test_id_is_derived_from_entity(self):
        record = EmbeddingRecord(entity_id="e1")
        assert record.id == "embedding_e1"
        assert record.status == EmbeddingStatus.PENDING

    def test_explicit_id_is_kept(self):
        assert EmbeddingRecord(id="custom", entity_id="e1").id == "custom"

    def test_generated_requires_vector(self):
        with pytest.raises(ValidationError):
            EmbeddingRecord(entity_id="e1", status=EmbeddingStatus.GENERATED)

        with pytest.raises(ValidationError):
            EmbeddingRecord(entity_id="e1", status=EmbeddingStatus.GENERATED, embedding=[])

    def test_generated_vector_must_match_dimensions(self):
        with pytest.raises(ValidationError):
            EmbeddingRecord(
                entity_id="e1",
                status=EmbeddingStatus.GENERATED,
                embedding=[0.1, 0.2],
                dimensions=3,
            )

    @pytest.mark.parametrize("status", [EmbeddingStatus.PENDING, EmbeddingStatus.FAILED])
    def test_non_generated_has_no_vector(self, status):
        with pytest.raises(ValidationError):
            EmbeddingRecord(entity_id="e1", status=status, embedding=[0.1])

    def test_negative_retry_count_rejected(self):
        with pytest.raises(ValidationError):
            EmbeddingRecord(entity_id="e1", retry_count=-1)

    def test_is_usable(self):
        generated = EmbeddingRecord(
            entity_id="e1", status=EmbeddingStatus.GENERATED, embedding=[0.1, 0.2], dimensions=2
        )
        assert generated.is_usable
        assert not EmbeddingRecord(entity_id="e2").is_usable


class TestSummaryHash:
    def test_hash_is_stable_base64_sha256(self):
        first = EmbeddingRecord.compute_hash("persona con perro")
        assert first == EmbeddingRecord.compute_hash("persona con perro")
        assert first != EmbeddingRecord.compute_hash("persona con gato")
        assert len(first) == 44

    def test_summary_changed(self):
        record = EmbeddingRecord(
            entity_id="e1", summary_hash=EmbeddingRecord.compute_hash("resumen")
        )
        assert not record.summary_changed("resumen")
        assert record.summary_changed("resumen nuevo")

    def test_needs_regeneration(self):
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        record = EmbeddingRecord(entity_id="e1", entity_last_modified=stamp)
        assert record.needs_regeneration(stamp + timedelta(seconds=1))
        assert not record.needs_regeneration(stamp)


class TestDatabaseRows:
    def test_pgvector_string_is_parsed(self):
        record = EmbeddingRecord.from_db(
            {
                "entity_id": "e1",
                "entity_type": "job",
                "embedding": "[0.25,-0.5,1]",
                "dimensions": 3,
                "status": "generated",
                "entity_last_modified": "2024-01-01T00:00:00+00:00",
            }
        )

        assert record.embedding == [0.25, -0.5, 1.0]
        assert record.entity_type == EntityType.JOB
        assert record.entity_last_modified.tzinfo is not None

    def test_blank_vector_string_is_none(self):
        record = EmbeddingRecord.from_db({"entity_id": "e1", "embedding": "  ", "status": "pending"})
        assert record.embedding is None

    def test_to_db_dict_uses_plain_values(self):
        record = EmbeddingRecord(
            entity_id="e1", status=EmbeddingStatus.GENERATED, embedding=[0.1], dimensions=1
        )
        row = record.to_db_dict()
        assert row["status"] == "generated"
        assert row["id"] == "embedding_e1"
        assert row["embedding"] == [0.1]
