"""AsyncIndexRepository — AsyncElasticsearch mock / SuspendingClient 양쪽"""

from __future__ import annotations

import asyncio
import gc
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest
from elasticsearch import ConflictError, NotFoundError

from es_wrapper import (
    DEFAULT_SCHEMA,
    AsyncIndexRepository,
    CallbackClient,
    Config,
    OperationFailed,
    RefreshNotAllowed,
    StreamClosed,
    SuspendingClient,
)

from .helpers import es_error, hit, search_response


@dataclass
class Thing:
    title: str


def _repo(client, **kwargs) -> AsyncIndexRepository[Thing]:
    return AsyncIndexRepository(client, "things", model_class=Thing, **kwargs)


# ============================================================
# 인덱스 관리
# ============================================================


def test_create_index_uses_default_schema(async_client):
    asyncio.run(_repo(async_client).create_index())
    async_client.indices.create.assert_awaited_once_with(
        index="things",
        settings=DEFAULT_SCHEMA["settings"],
        mappings=DEFAULT_SCHEMA["mappings"],
    )


def test_create_index_adds_aliases(async_client):
    repo = _repo(async_client, index_read_alias="things_read", index_write_alias="things_write")
    asyncio.run(repo.create_index({"mappings": {"properties": {}}}))
    kwargs = async_client.indices.create.call_args.kwargs
    assert kwargs["aliases"] == {"things_read": {}, "things_write": {}}
    assert kwargs["settings"] == {}


def test_delete_missing_index_returns_false(async_client):
    async_client.indices.delete.side_effect = es_error(NotFoundError, 404)
    assert asyncio.run(_repo(async_client).delete_index()) is False


def test_delete_missing_index_through_suspending_client(async_client):
    # SuspendingClient는 원인을 OperationFailed로 감싼다
    async_client.indices.delete.side_effect = OperationFailed(es_error(NotFoundError, 404))
    assert asyncio.run(_repo(async_client).delete_index()) is False


def test_refresh_requires_permission(async_client):
    with pytest.raises(RefreshNotAllowed):
        asyncio.run(_repo(async_client).refresh())
    asyncio.run(_repo(async_client, refresh_allowed=True).refresh())
    async_client.indices.refresh.assert_awaited_once_with(index="things")


# ============================================================
# 단건 CRUD
# ============================================================


def test_index_serializes_dataclass(async_client):
    asyncio.run(_repo(async_client).index("thing1", Thing("The first thing")))
    async_client.index.assert_awaited_once_with(
        index="things",
        id="thing1",
        document={"title": "The first thing"},
        op_type="create",
    )


def test_get_decodes_or_returns_none(async_client):
    async_client.get.return_value = {
        "_id": "thing1", "found": True, "_seq_no": 4, "_primary_term": 1,
        "_source": {"title": "The first thing", "extra": "ignored"},
    }
    repo = _repo(async_client)
    assert asyncio.run(repo.get("thing1")) == Thing("The first thing")
    assert asyncio.run(repo.get_with_seq_no("thing1")) == (Thing("The first thing"), 4, 1)

    async_client.get.side_effect = es_error(NotFoundError, 404)
    assert asyncio.run(repo.get("missing")) is None


def test_mget_skips_missing(async_client):
    async_client.mget.return_value = {
        "docs": [
            {"_id": "a", "found": True, "_source": {"title": "A"}},
            {"_id": "b", "found": False},
        ]
    }
    assert asyncio.run(_repo(async_client).mget(["a", "b"])) == [Thing("A")]
    assert asyncio.run(_repo(async_client).mget([])) == []


def test_update_retries_on_conflict(async_client):
    async_client.get.side_effect = [
        {"_source": {"title": "v1"}, "_seq_no": 1, "_primary_term": 1},
        {"_source": {"title": "v2"}, "_seq_no": 2, "_primary_term": 1},
    ]
    async_client.index.side_effect = [es_error(ConflictError, 409), {"result": "updated"}]

    updated = asyncio.run(
        _repo(async_client).update("thing1", lambda t: Thing(t.title + "!"))
    )
    assert updated == Thing("v2!")
    last = async_client.index.call_args.kwargs
    assert last["if_seq_no"] == 2
    assert last["document"] == {"title": "v2!"}


def test_update_gives_up_after_max_updates(async_client):
    async_client.get.return_value = {"_source": {"title": "v"}, "_seq_no": 1, "_primary_term": 1}
    async_client.index.side_effect = es_error(ConflictError, 409)
    with pytest.raises(ConflictError):
        asyncio.run(_repo(async_client).update("thing1", lambda t: t, max_updates=1))
    assert async_client.index.await_count == 2


def test_delete_ignores_missing(async_client):
    async_client.delete.side_effect = es_error(NotFoundError, 404)
    asyncio.run(_repo(async_client).delete("missing"))
    async_client.delete.side_effect = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        asyncio.run(_repo(async_client).delete("thing1"))


def test_count(async_client):
    async_client.count.return_value = {"count": 10}
    assert asyncio.run(_repo(async_client).count()) == 10
    async_client.count.assert_awaited_once_with(index="things")


# ============================================================
# 검색
# ============================================================


def test_search_without_scroll_is_single_page(async_client):
    async_client.search.return_value = search_response(
        [hit("1", "one"), hit("2", "two")], total=7
    )

    async def scenario():
        results = await _repo(async_client).search({"match": {"title": "one"}}, size=2)
        return results.total_hits, await results.mapped_hits.to_list()

    total, things = asyncio.run(scenario())
    assert total == 7
    assert things == [Thing("one"), Thing("two")]
    async_client.scroll.assert_not_awaited()
    async_client.clear_scroll.assert_not_awaited()
    assert "scroll" not in async_client.search.call_args.kwargs


def test_scrolling_search_pages_and_clears(async_client):
    async_client.search.return_value = search_response(
        [hit("1", "a"), hit("2", "b")], scroll_id="S1", total=3
    )
    async_client.scroll.return_value = search_response([hit("3", "c")], scroll_id="S2", total=3)

    async def scenario():
        results = await _repo(async_client, default_page_size=2).search(scrolling=True)
        titles = [t.title async for t in results.mapped_hits]
        with pytest.raises(StreamClosed):
            results.hits
        return titles

    assert asyncio.run(scenario()) == ["a", "b", "c"]
    async_client.search.assert_awaited_once_with(
        index="things", query={"match_all": {}}, size=2, scroll="1m"
    )
    async_client.scroll.assert_awaited_once_with(scroll_id="S1", scroll="1m")
    async_client.clear_scroll.assert_awaited_once_with(scroll_id="S2")


def test_unconsumed_scroll_is_released_on_close(async_client):
    async_client.search.return_value = search_response([hit("1", "a")], scroll_id="S1")

    async def scenario():
        async with await _repo(async_client, default_page_size=1).search(scrolling=True):
            pass

    asyncio.run(scenario())
    async_client.scroll.assert_not_awaited()
    async_client.clear_scroll.assert_awaited_once_with(scroll_id="S1")


def test_break_out_of_scroll_without_close_clears_it(async_client):
    async_client.search.return_value = search_response(
        [hit("1", "a"), hit("2", "b")], scroll_id="S1"
    )

    async def scenario():
        results = await _repo(async_client, default_page_size=2).search(scrolling=True)
        async for _ in results.hits:
            break
        del results
        gc.collect()

    asyncio.run(scenario())
    async_client.scroll.assert_not_awaited()
    async_client.clear_scroll.assert_awaited_once_with(scroll_id="S1")


def test_from_config_uses_config_values():
    config = Config(index_name="asyncthings", refresh_allowed=True, page_size=7, bulk_size=3)
    repo = AsyncIndexRepository.from_config(config, model_class=Thing, client=MagicMock())
    assert repo.index_name == "asyncthings"
    assert repo.refresh_allowed is True
    assert repo.default_page_size == 7
    assert repo.bulk_size == 3


# ============================================================
# SuspendingClient 위에서 전체 흐름
# ============================================================


def test_scroll_search_through_callback_client():
    es = MagicMock()
    es.search.return_value = search_response([hit("1", "a"), hit("2", "b")], scroll_id="S1")
    es.scroll.side_effect = [
        search_response([hit("3", "c"), hit("4", "d")], scroll_id="S2"),
        search_response([], scroll_id="S3"),
    ]
    callbacks = CallbackClient(es, max_workers=2)
    repo = _repo(SuspendingClient(callbacks), default_page_size=2)

    async def scenario():
        results = await repo.search(scrolling=True)
        return await results.mapped_hits.count()

    try:
        assert asyncio.run(scenario()) == 4
    finally:
        callbacks.close()
    assert es.scroll.call_count == 2
    es.clear_scroll.assert_called_once_with(scroll_id="S3")


def test_scroll_failure_through_callback_client():
    es = MagicMock()
    es.search.return_value = search_response([hit("1", "a")], scroll_id="S1")
    es.scroll.side_effect = ConnectionError("node left")
    callbacks = CallbackClient(es, max_workers=1)
    repo = _repo(SuspendingClient(callbacks), default_page_size=1)
    seen = []

    async def scenario():
        results = await repo.search(scrolling=True)
        stream = results.hits
        with pytest.raises(OperationFailed) as info:
            async for h in stream:
                seen.append(h["_id"])
        with pytest.raises(StreamClosed):
            await stream.__anext__()
        return info.value

    try:
        error = asyncio.run(scenario())
    finally:
        callbacks.close()
    assert seen == ["1"]
    assert isinstance(error.cause, ConnectionError)
    es.clear_scroll.assert_called_once_with(scroll_id="S1")


def test_close_closes_client():
    client = MagicMock()
    client.close = AsyncMock()
    asyncio.run(_repo(client).close())
    client.close.assert_awaited_once()
