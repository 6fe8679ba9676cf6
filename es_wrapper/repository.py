"""비동기 인덱스 repository — 인덱스 관리 + CRUD + bulk + count + 검색

client는 await 가능한 Elasticsearch API를 가진 객체면 무엇이든 된다:
  - AsyncElasticsearch (기본, from_config)
  - SuspendingClient (콜백 클라이언트를 await 형태로 감싼 것)

SuspendingClient는 실패를 OperationFailed(cause)로 감싸므로
NotFoundError / ConflictError 판단은 errors.unwrap()을 거친다.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from elasticsearch import ConflictError, NotFoundError

from .bulk import AsyncBulkIndexingSession, ItemCallback
from .codec import ModelCodec
from .config import DEFAULT_SCHEMA, Config, build_es_client
from .errors import RefreshNotAllowed, StreamClosed, unwrap
from .log import get_logger
from .paging import Page, PageCursor, PagedStream

logger = get_logger("repository")

T = TypeVar("T")


def _body(response: Any) -> Any:
    """ObjectApiResponse → dict (이미 dict면 그대로)"""
    return getattr(response, "body", response)


class AsyncSearchResults(Generic[T]):
    """
    검색 결과.

    hits (raw hit dict) 와 mapped_hits (도메인 객체) 는 같은 결과를 소비하는
    단일 패스 스트림이므로 둘 중 하나만, 한 번만 꺼낼 수 있다.

        async with await repo.search(scrolling=True) as results:
            print(results.total_hits)
            print(await results.mapped_hits.count())
    """

    def __init__(
        self,
        response: Any,
        first_page: Page,
        fetch_next: Callable,
        release: Callable | None,
        decode: Callable[[dict], T],
    ):
        body = _body(response)
        total = body["hits"].get("total")
        self.total_hits: int | None = total["value"] if isinstance(total, dict) else total
        self.took: int | None = body.get("took")
        self.response = response
        self._first_page = first_page
        self._fetch_next = fetch_next
        self._release = release
        self._decode = decode
        self._stream: PagedStream | None = None

    def _take(self, decode: Callable | None) -> PagedStream:
        if self._stream is not None:
            raise StreamClosed("검색 결과 스트림은 한 번만 꺼낼 수 있습니다")
        self._stream = PagedStream(
            self._first_page, self._fetch_next, self._release, decode=decode
        )
        return self._stream

    @property
    def hits(self) -> PagedStream[dict]:
        return self._take(None)

    @property
    def mapped_hits(self) -> PagedStream[T]:
        return self._take(self._decode)

    async def aclose(self):
        """소비하지 않은 scroll도 해제"""
        if self._stream is None:
            self._take(None)
        await self._stream.aclose()

    async def __aenter__(self) -> AsyncSearchResults[T]:
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class AsyncIndexRepository(Generic[T]):
    """
    인덱스 1개에 대한 비동기 repository.

        repo = AsyncIndexRepository.from_config(config, model_class=Thing)
        await repo.create_index()
        await repo.index("thing1", Thing("The first thing"))
        async with repo.bulk() as session:
            await session.index("thing_2", Thing("thing 2"))
        await repo.refresh()
        print(await repo.count())
    """

    def __init__(
        self,
        client: Any,
        index: str,
        model_class: type[T] | None = None,
        codec: ModelCodec | None = None,
        refresh_allowed: bool = False,
        index_read_alias: str | None = None,
        index_write_alias: str | None = None,
        default_page_size: int = 100,
        scroll_ttl: str = "1m",
        bulk_size: int = 100,
    ):
        self.client = client
        self.index_name = index
        self.codec = codec or ModelCodec(model_class)
        self.refresh_allowed = refresh_allowed
        self.index_read_alias = index_read_alias or index
        self.index_write_alias = index_write_alias or index
        self.default_page_size = default_page_size
        self.scroll_ttl = scroll_ttl
        self.bulk_size = bulk_size

    @classmethod
    def from_config(
        cls, config: Config, model_class: type[T] | None = None, client: Any = None
    ) -> AsyncIndexRepository[T]:
        """Config로 AsyncElasticsearch 연결까지 포함한 repository 생성"""
        return cls(
            client if client is not None else build_es_client(config),
            config.index_name,
            model_class=model_class,
            refresh_allowed=config.refresh_allowed,
            default_page_size=config.page_size,
            scroll_ttl=config.scroll_ttl,
            bulk_size=config.bulk_size,
        )

    # ================================================================
    # 인덱스 관리
    # ================================================================

    async def create_index(self, schema: dict | None = None):
        """인덱스 생성. read/write alias가 인덱스명과 다르면 alias도 함께 생성."""
        schema = schema or DEFAULT_SCHEMA
        kwargs: dict = {
            "index": self.index_name,
            "settings": schema.get("settings", {}),
            "mappings": schema.get("mappings", {}),
        }
        aliases = {
            alias: {}
            for alias in {self.index_read_alias, self.index_write_alias}
            if alias != self.index_name
        }
        if aliases:
            kwargs["aliases"] = aliases
        await self.client.indices.create(**kwargs)
        logger.info(f"인덱스 생성: {self.index_name}")

    async def delete_index(self) -> bool:
        """인덱스 삭제. 없으면 False."""
        try:
            await self.client.indices.delete(index=self.index_name)
        except Exception as e:
            if isinstance(unwrap(e), NotFoundError):
                return False
            raise
        logger.info(f"인덱스 삭제: {self.index_name}")
        return True

    async def refresh(self):
        """수동 리프레시. refresh_allowed=True일 때만 허용."""
        if not self.refresh_allowed:
            raise RefreshNotAllowed(
                f"{self.index_name}: refresh는 테스트용입니다 "
                "(refresh_allowed=True로 생성하세요)"
            )
        await self.client.indices.refresh(index=self.index_name)

    # ================================================================
    # 단건 CRUD
    # ================================================================

    async def index(
        self, doc_id: str, obj: T, create: bool = True, refresh: str | None = None
    ):
        """단일 문서 인덱싱. create=True면 이미 있는 문서는 ConflictError."""
        kwargs: dict = {
            "index": self.index_write_alias,
            "id": doc_id,
            "document": self.codec.serialize(obj),
            "op_type": "create" if create else "index",
        }
        if refresh is not None:
            kwargs["refresh"] = refresh
        return await self.client.index(**kwargs)

    async def get_with_seq_no(self, doc_id: str) -> tuple[T, int, int] | None:
        """(객체, _seq_no, _primary_term). 없으면 None."""
        try:
            result = _body(await self.client.get(index=self.index_read_alias, id=doc_id))
        except Exception as e:
            if isinstance(unwrap(e), NotFoundError):
                return None
            raise
        if not result.get("found", True):
            return None
        return (
            self.codec.deserialize(result["_source"]),
            result["_seq_no"],
            result["_primary_term"],
        )

    async def get(self, doc_id: str) -> T | None:
        found = await self.get_with_seq_no(doc_id)
        return found[0] if found else None

    async def mget(self, ids: list[str]) -> list[T]:
        """여러 ID 조회. 없는 문서는 건너뜀."""
        if not ids:
            return []
        result = _body(await self.client.mget(index=self.index_read_alias, ids=ids))
        return [
            self.codec.deserialize(doc["_source"])
            for doc in result["docs"]
            if doc.get("found")
        ]

    async def update(
        self, doc_id: str, transform: Callable[[T], T], max_updates: int = 2
    ) -> T:
        """
        낙관적 동시성 업데이트.

        get(seq_no) → transform → if_seq_no/if_primary_term 조건부 index.
        버전 충돌 시 max_updates회까지 다시 읽고 재시도.
        문서가 없으면 NotFoundError (SuspendingClient면 OperationFailed).
        """
        attempt = 0
        while True:
            result = _body(await self.client.get(index=self.index_read_alias, id=doc_id))
            updated = transform(self.codec.deserialize(result["_source"]))
            try:
                await self.client.index(
                    index=self.index_write_alias,
                    id=doc_id,
                    document=self.codec.serialize(updated),
                    if_seq_no=result["_seq_no"],
                    if_primary_term=result["_primary_term"],
                )
                return updated
            except Exception as e:
                if not isinstance(unwrap(e), ConflictError) or attempt >= max_updates:
                    raise
                attempt += 1
                logger.warning(
                    f"[yellow]버전 충돌[/yellow] {doc_id} "
                    f"({attempt}/{max_updates}) — 다시 읽고 재시도"
                )

    async def delete(self, doc_id: str, refresh: str | None = None):
        """문서 삭제. 존재하지 않으면 무시."""
        kwargs: dict = {"index": self.index_write_alias, "id": doc_id}
        if refresh is not None:
            kwargs["refresh"] = refresh
        try:
            await self.client.delete(**kwargs)
        except Exception as e:
            if not isinstance(unwrap(e), NotFoundError):
                raise

    # ================================================================
    # bulk
    # ================================================================

    def bulk(
        self,
        bulk_size: int | None = None,
        refresh: str | None = None,
        item_callback: ItemCallback | None = None,
    ) -> AsyncBulkIndexingSession:
        """async with repo.bulk() as session: ..."""
        return AsyncBulkIndexingSession(
            self.client,
            self.index_write_alias,
            self.codec,
            bulk_size=bulk_size or self.bulk_size,
            refresh=refresh,
            item_callback=item_callback,
        )

    # ================================================================
    # count / 검색
    # ================================================================

    async def count(self, query: dict | None = None) -> int:
        kwargs: dict = {"index": self.index_read_alias}
        if query is not None:
            kwargs["query"] = query
        result = await self.client.count(**kwargs)
        return result["count"]

    async def search(
        self,
        query: dict | None = None,
        *,
        scrolling: bool = False,
        size: int | None = None,
        scroll_ttl: str | None = None,
        **body: Any,
    ) -> AsyncSearchResults[T]:
        """
        검색. scrolling=True면 결과 전체를 scroll로 페이지 단위 지연 로딩.

        Args:
            query:      ES query DSL (None이면 match_all)
            scrolling:  scroll 사용 여부
            size:       페이지 크기 (기본: default_page_size)
            scroll_ttl: scroll 유지 시간 (기본: self.scroll_ttl)
            body:       sort, _source, aggs 등 추가 검색 인자
        """
        size = size or self.default_page_size
        ttl = scroll_ttl or self.scroll_ttl
        kwargs: dict = {
            "index": self.index_read_alias,
            "query": query or {"match_all": {}},
            "size": size,
            **body,
        }
        if scrolling:
            kwargs["scroll"] = ttl

        response = await self.client.search(**kwargs)

        def to_page(resp: Any) -> Page:
            data = _body(resp)
            hits = data["hits"]["hits"]
            scroll_id = data.get("_scroll_id") if scrolling else None
            return Page(
                items=list(hits),
                cursor=PageCursor(scroll_id) if scroll_id else None,
                # 꽉 찬 페이지면 다음 페이지가 있을 수 있음
                more=scrolling and len(hits) >= size,
            )

        async def fetch_next(cursor: PageCursor) -> Page:
            return to_page(await self.client.scroll(scroll_id=cursor.scroll_id, scroll=ttl))

        async def release(cursor: PageCursor):
            await self.client.clear_scroll(scroll_id=cursor.scroll_id)

        return AsyncSearchResults(
            response,
            to_page(response),
            fetch_next,
            release if scrolling else None,
            decode=lambda hit: self.codec.deserialize(hit["_source"]),
        )

    async def close(self):
        await self.client.close()
