"""
es_wrapper — Elasticsearch 클라이언트용 await / 스트리밍 래퍼

세 가지 호출 방식:
    es.indices.reload_search_analyzers(index="myindex")                  # 동기
    callbacks.start("indices.reload_search_analyzers", ok, fail, index="myindex")  # 콜백
    await SuspendingClient(callbacks).indices.reload_search_analyzers(index="myindex")  # await

비동기 repository:
    from es_wrapper import AsyncIndexRepository, Config
    repo = AsyncIndexRepository.from_config(Config(refresh_allowed=True), model_class=Thing)
    await repo.create_index()
    async with repo.bulk() as session:
        await session.index("thing_1", Thing("thing 1"))
    await repo.refresh()
    results = await repo.search(scrolling=True)
    print(await results.mapped_hits.count())
"""

from .bulk import AsyncBulkIndexingSession, BulkOperation
from .callbacks import CallbackClient
from .cancellation import CancellationToken
from .codec import ModelCodec
from .config import DEFAULT_SCHEMA, Config, build_es_client, build_sync_client
from .errors import (
    BulkIndexingError,
    EsWrapperError,
    OperationFailed,
    RefreshNotAllowed,
    ResourceReleaseFailed,
    StreamClosed,
)
from .log import get_logger, setup_logging
from .paging import Page, PageCursor, PagedStream, StreamState
from .repository import AsyncIndexRepository, AsyncSearchResults
from .suspending import PendingOperation, SuspendingClient, suspend_call
from .walkthrough import reload_analyzers_three_ways, run_walkthrough

__all__ = [
    "Config", "DEFAULT_SCHEMA", "build_es_client", "build_sync_client",
    "CallbackClient", "CancellationToken",
    "PendingOperation", "SuspendingClient", "suspend_call",
    "Page", "PageCursor", "PagedStream", "StreamState",
    "ModelCodec", "AsyncBulkIndexingSession", "BulkOperation",
    "AsyncIndexRepository", "AsyncSearchResults",
    "EsWrapperError", "OperationFailed", "StreamClosed", "ResourceReleaseFailed",
    "RefreshNotAllowed", "BulkIndexingError",
    "setup_logging", "get_logger",
    "reload_analyzers_three_ways", "run_walkthrough",
]
