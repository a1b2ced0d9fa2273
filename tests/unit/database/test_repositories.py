"""Tests de los repositorios de Supabase con un query builder falso."""

from types import SimpleNamespace

import pytest

from vinculo.database import (
    EmbeddingRepository,
    EntityRepository,
    ReputationRepository,
    SupabaseClient,
)
from vinculo.models import AttributeFilter, EmbeddingRecord, EmbeddingStatus, EntityType, FilterGroup


class FakeQuery:
    """Registra la cadena de llamadas del builder y devuelve respuestas en orden."""

    def __init__(self, table, responses):
        self.table_name = table
        self.calls = []
        self._responses = responses

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        data, count = self._responses.pop(0) if self._responses else ([], None)
        return SimpleNamespace(data=data, count=count)


class FakeSupabase:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.queries: list[FakeQuery] = []

    def table(self, name):
        query = FakeQuery(name, self.responses)
        self.queries.append(query)
        return query


def calls_named(query: FakeQuery, name: str):
    return [args for called, args, _ in query.calls if called == name]


def client_with(*responses):
    fake = FakeSupabase([(data, count) for data, count in responses])
    return fake, SupabaseClient(fake)


class TestEntityRepository:
    @pytest.mark.asyncio
    async def test_get_entity(self):
        fake, client = client_with(([{"id": "e1", "entity_type": "job", "name": "Backend"}], None))

        entity = await EntityRepository(client).get_entity("e1")

        assert entity.entity_type == EntityType.JOB
        assert fake.queries[0].table_name == "entities"
        assert calls_named(fake.queries[0], "eq") == [("id", "e1")]

    @pytest.mark.asyncio
    async def test_get_missing_entity(self):
        _, client = client_with(([], None))
        assert await EntityRepository(client).get_entity("nope") is None

    @pytest.mark.asyncio
    async def test_list_applies_type_and_pushdown(self):
        fake, client = client_with(([{"id": "e1"}], None))
        group = FilterGroup.all_of(AttributeFilter(field_path="hasPets", operator="is_true"))

        await EntityRepository(client).list_entities(entity_type=EntityType.PERSON, filters=group)

        query = fake.queries[0]
        assert calls_named(query, "eq") == [("entity_type", "person")]
        assert calls_named(query, "or_") == [("and(attributes->>hasPets.eq.true)",)]
        assert calls_named(query, "order") == [("id",)]
        assert calls_named(query, "range") == [(0, 999)]

    @pytest.mark.asyncio
    async def test_list_by_ids_is_chunked(self):
        ids = [f"e{i}" for i in range(450)]
        fake, client = client_with(
            ([{"id": i} for i in ids[:200]], None),
            ([{"id": i} for i in ids[200:400]], None),
            ([{"id": i} for i in ids[400:]], None),
        )

        entities = await EntityRepository(client).list_entities(ids=ids + ids[:10])

        assert len(entities) == 450
        chunk_sizes = [len(calls_named(q, "in_")[0][1]) for q in fake.queries]
        assert chunk_sizes == [200, 200, 50]

    @pytest.mark.asyncio
    async def test_invalid_rows_are_skipped(self):
        _, client = client_with(([{"id": "ok"}, {"id": "bad", "entity_type": "alien"}], None))
        entities = await EntityRepository(client).list_entities()
        assert [e.id for e in entities] == ["ok"]

    @pytest.mark.asyncio
    async def test_unscoped_list_reads_every_page(self):
        fake, client = client_with(
            ([{"id": "e1"}, {"id": "e2"}], None),
            ([{"id": "e3"}, {"id": "e4"}], None),
            ([{"id": "e5"}], None),
        )

        entities = await EntityRepository(client, page_size=2).list_entities()

        assert [e.id for e in entities] == ["e1", "e2", "e3", "e4", "e5"]
        assert [calls_named(q, "range")[0] for q in fake.queries] == [(0, 1), (2, 3), (4, 5)]

    @pytest.mark.asyncio
    async def test_exact_page_multiple_stops_on_empty_page(self):
        fake, client = client_with(([{"id": "e1"}, {"id": "e2"}], None), ([], None))

        entities = await EntityRepository(client, page_size=2).list_entities()

        assert len(entities) == 2
        assert len(fake.queries) == 2


class TestEmbeddingRepository:
    @pytest.mark.asyncio
    async def test_generated_rows_are_parsed(self):
        row = {
            "entity_id": "e1",
            "embedding": "[0.5,0.5]",
            "dimensions": 2,
            "status": "generated",
        }
        fake, client = client_with(([row], None))

        records = await EmbeddingRepository(client).get_embeddings_by_status(
            EmbeddingStatus.GENERATED, limit=5, entity_type=EntityType.JOB
        )

        assert records[0].embedding == [0.5, 0.5]
        query = fake.queries[0]
        assert query.table_name == "entity_embeddings"
        assert calls_named(query, "eq") == [("status", "generated")]
        assert calls_named(query, "or_") == [("entity_type.eq.job,entity_type.is.null",)]
        assert calls_named(query, "order") == [("entity_id",)]
        assert calls_named(query, "range") == [(0, 4)]

    @pytest.mark.asyncio
    async def test_invalid_vector_row_is_skipped(self):
        rows = [
            {"entity_id": "e1", "status": "generated", "embedding": None},
            {"entity_id": "e2", "status": "generated", "embedding": [1.0]},
        ]
        _, client = client_with((rows, None))

        records = await EmbeddingRepository(client).get_embeddings_by_status(EmbeddingStatus.GENERATED)

        assert [r.entity_id for r in records] == ["e2"]

    @pytest.mark.asyncio
    async def test_status_scan_reads_past_the_row_cap(self):
        rows = [
            {"entity_id": f"e{i}", "status": "generated", "embedding": [1.0, 0.0]}
            for i in range(3)
        ]
        fake, client = client_with((rows[:2], None), (rows[2:], None))

        records = await EmbeddingRepository(client, page_size=2).get_embeddings_by_status(
            EmbeddingStatus.GENERATED
        )

        assert [r.entity_id for r in records] == ["e0", "e1", "e2"]
        assert [calls_named(q, "range")[0] for q in fake.queries] == [(0, 1), (2, 3)]
        assert all(calls_named(q, "order") == [("entity_id",)] for q in fake.queries)

    @pytest.mark.asyncio
    async def test_limit_caps_the_last_page(self):
        rows = [
            {"entity_id": f"e{i}", "status": "pending", "embedding": None}
            for i in range(3)
        ]
        fake, client = client_with((rows[:2], None), (rows[2:], None))

        records = await EmbeddingRepository(client, page_size=2).get_embeddings_by_status(
            EmbeddingStatus.PENDING, limit=3
        )

        assert len(records) == 3
        assert [calls_named(q, "range")[0] for q in fake.queries] == [(0, 1), (2, 2)]

    @pytest.mark.asyncio
    async def test_upsert_conflicts_on_entity(self):
        fake, client = client_with(([{"entity_id": "e1"}], None))

        await EmbeddingRepository(client).upsert(EmbeddingRecord(entity_id="e1"))

        (args, kwargs), = [(a, k) for name, a, k in fake.queries[0].calls if name == "upsert"]
        assert args[0]["id"] == "embedding_e1"
        assert kwargs == {"on_conflict": "entity_id"}

    @pytest.mark.asyncio
    async def test_count_by_status(self):
        _, client = client_with(([], 3), ([], 10), ([], None))
        counts = await EmbeddingRepository(client).count_by_status()
        assert counts == {"pending": 3, "generated": 10, "failed": 0}


class TestReputationRepository:
    @pytest.mark.asyncio
    async def test_get_reputations(self):
        fake, client = client_with(
            ([{"entity_id": "a", "overall_score": 4.5, "total_ratings": 8, "confidence_score": 0.6}], None)
        )

        reputations = await ReputationRepository(client).get_reputations(["a", "b"])

        assert set(reputations) == {"a"}
        assert reputations["a"].total_ratings == 8
        assert calls_named(fake.queries[0], "in_") == [("entity_id", ["a", "b"])]
