"""
Unit tests for the SQL and HTTP content stores.
"""

import httpx
import pytest

from factories import make_item
from personalization.content import HttpContentStore, InMemoryContentStore, SqlContentStore
from personalization.core.errors import DataAccessError
from personalization.models import CandidateConstraints, ContentDifficulty


class TestInMemoryContentStore:
    @pytest.mark.asyncio
    async def test_loads_sample_catalog(self, data_dir):
        store = InMemoryContentStore.from_json(data_dir / "sample_catalog.json")

        items = await store.get_eligible_content("learner-ana", "reading", CandidateConstraints())

        assert items
        assert all(item.subject == "reading" for item in items)
        assert await store.get_mastery_record("learner-ana")

    def test_missing_catalog_is_data_access_error(self, tmp_path):
        with pytest.raises(DataAccessError):
            InMemoryContentStore.from_json(tmp_path / "missing.json")


class TestSqlContentStore:
    @pytest.fixture
    def store(self, tmp_path):
        store = SqlContentStore(f"sqlite:///{tmp_path / 'content.db'}", create_tables=True)
        store.add_items(
            [
                make_item("m-1", skills=("counting",), modalities=("visual",)),
                make_item("m-2", content_type="video", estimated_minutes=10),
                make_item("m-3", difficulty=ContentDifficulty.ADVANCED),
                make_item("r-1", subject="reading"),
            ]
        )
        yield store
        store.engine.dispose()

    @pytest.mark.asyncio
    async def test_filters_and_orders(self, store):
        items = await store.get_eligible_content(
            "learner-1", "math", CandidateConstraints(difficulty=ContentDifficulty.INTERMEDIATE)
        )

        assert [item.content_id for item in items] == ["m-1", "m-2"]
        assert items[0].skills == ("counting",)
        assert items[0].modalities == ("visual",)

    @pytest.mark.asyncio
    async def test_content_type_and_minutes(self, store):
        items = await store.get_eligible_content(
            "learner-1", None, CandidateConstraints(content_types=("video",), max_minutes=15)
        )

        assert [item.content_id for item in items] == ["m-2"]

    @pytest.mark.asyncio
    async def test_mastery_upsert(self, store):
        store.set_mastery("learner-1", "counting", 0.4)
        store.set_mastery("learner-1", "counting", 0.8)
        store.set_mastery("learner-1", "fractions", 0.2)

        assert await store.get_mastery_record("learner-1") == {"counting": 0.8, "fractions": 0.2}
        assert await store.get_mastery_record("learner-2") == {}

    def test_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            SqlContentStore()


def content_service(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/content/eligible":
        assert request.url.params["subject"] == "math"
        assert request.headers["X-API-Key"] == "secret"
        return httpx.Response(
            200,
            json={"items": [make_item("m-1").to_dict(), make_item("m-2", content_type="video").to_dict()]},
        )
    if request.url.path == "/learners/learner-1/mastery":
        return httpx.Response(200, json={"mastery": {"counting": 0.75}})
    return httpx.Response(404, json={"detail": "not found"})


class TestHttpContentStore:
    @pytest.mark.asyncio
    async def test_fetches_items_and_mastery(self):
        transport = httpx.MockTransport(content_service)
        async with HttpContentStore("http://content.test", api_key="secret", transport=transport) as store:
            items = await store.get_eligible_content("learner-1", "math", CandidateConstraints())
            mastery = await store.get_mastery_record("learner-1")

        assert [item.content_id for item in items] == ["m-1", "m-2"]
        assert mastery == {"counting": 0.75}

    @pytest.mark.asyncio
    async def test_error_status_is_data_access_error(self):
        transport = httpx.MockTransport(content_service)
        store = HttpContentStore("http://content.test", transport=transport)

        with pytest.raises(DataAccessError):
            await store.get_mastery_record("learner-404")
        await store.close()

    @pytest.mark.asyncio
    async def test_connection_error_is_data_access_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = HttpContentStore("http://content.test", transport=httpx.MockTransport(refuse))

        with pytest.raises(DataAccessError):
            await store.get_eligible_content("learner-1", "math", CandidateConstraints())
        await store.close()

    @pytest.mark.asyncio
    async def test_malformed_mastery_is_data_access_error(self):
        def bad_mastery(request):
            return httpx.Response(200, json={"mastery": {"counting": "high"}})

        store = HttpContentStore("http://content.test", transport=httpx.MockTransport(bad_mastery))

        with pytest.raises(DataAccessError, match="malformed mastery"):
            await store.get_mastery_record("learner-1")
        await store.close()
