"""
여러 페이지 결과 → 하나의 지연(lazy) 비동기 시퀀스

scroll 검색처럼 "다음 페이지 가져오기"를 반복해야 하는 결과를
async for 한 번으로 소비할 수 있게 한다.

  - 버퍼가 비었을 때만 다음 페이지를 요청 (선행 요청 없음, 동시 요청 1개)
  - 페이지 순서 → 페이지 내 순서 그대로 yield
  - more=False 이거나 빈 페이지가 오면 종료
  - 종료/실패/중단 시 cursor(scroll id)를 최대 1회 해제 (실패는 로그만)
  - async for 를 break 하고 스트림을 버려도 중단(ABANDONED)으로 처리

상태:
    CREATED → ACTIVE → EXHAUSTED | CLOSED(실패) | ABANDONED(중단)

사용법:
    async with PagedStream(first_page, fetch_next, release) as stream:
        async for item in stream:
            ...
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, TypeVar

from .errors import EsWrapperError, OperationFailed, ResourceReleaseFailed, StreamClosed
from .log import get_logger

logger = get_logger("paging")

T = TypeVar("T")


@dataclass
class PageCursor:
    """서버 측 페이지 상태 (scroll id). 소유 스트림만 사용."""
    scroll_id: str
    released: bool = False


@dataclass
class Page:
    """페이지 1개: 아이템 + 다음 페이지 cursor + 추가 페이지 존재 여부"""
    items: list[Any] = field(default_factory=list)
    cursor: PageCursor | None = None
    more: bool = False


class StreamState(Enum):
    CREATED = "created"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"
    ABANDONED = "abandoned"


FetchNext = Callable[[PageCursor], Awaitable[Page]]
Release = Callable[[PageCursor], Awaitable[Any]]


class PagedStream(Generic[T]):
    """
    단일 패스 비동기 시퀀스.

    Args:
        first_page: 요청 응답으로 이미 받은 첫 페이지
        fetch_next: cursor → 다음 Page (await)
        release:    cursor 해제 (clear scroll). None이면 해제 생략
        decode:     raw 아이템 → 도메인 객체 (None이면 raw 그대로)
    """

    def __init__(
        self,
        first_page: Page,
        fetch_next: FetchNext,
        release: Release | None = None,
        decode: Callable[[Any], T] | None = None,
    ):
        self._fetch_next = fetch_next
        self._release = release
        self._decode = decode
        self._buffer: deque = deque()
        self._cursor: PageCursor | None = None
        self._more = False
        self._accept(first_page)
        self.state = StreamState.CREATED
        self.pages = 1

    def _accept(self, page: Page) -> None:
        self._buffer.extend(page.items)
        if page.cursor is not None:
            self._cursor = page.cursor
        self._more = page.more and bool(page.items)

    # ================================================================
    # async iterator
    # ================================================================

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        # async for 루프를 break 하고 버려도 asyncgen finalizer가 aclose() 호출
        try:
            while True:
                try:
                    item = await self.__anext__()
                except StopAsyncIteration:
                    return
                yield item
        finally:
            await self.aclose()

    async def __anext__(self) -> T:
        if self.state in (StreamState.CLOSED, StreamState.ABANDONED):
            raise StreamClosed(f"스트림이 이미 닫혔습니다 ({self.state.value})")
        if self.state is StreamState.EXHAUSTED:
            raise StopAsyncIteration
        self.state = StreamState.ACTIVE

        while not self._buffer:
            if not self._more:
                await self._finish(StreamState.EXHAUSTED)
                raise StopAsyncIteration
            await self._next_page()

        item = self._buffer.popleft()
        return self._decode(item) if self._decode else item

    async def _next_page(self) -> None:
        cursor = self._cursor
        if cursor is None or cursor.released:
            await self._finish(StreamState.CLOSED)
            raise StreamClosed("다음 페이지를 가져올 cursor가 없습니다")
        try:
            page = await self._fetch_next(cursor)
        except (Exception, asyncio.CancelledError) as e:
            # 취소 포함, 어떤 경우든 cursor를 해제하고 닫는다
            await self._finish(StreamState.CLOSED)
            if isinstance(e, Exception) and not isinstance(e, EsWrapperError):
                raise OperationFailed(e) from e
            raise
        self.pages += 1
        logger.debug(f"page {self.pages}: {len(page.items)}건")
        self._accept(page)

    # ================================================================
    # 종료 + cursor 해제
    # ================================================================

    async def _finish(self, state: StreamState) -> None:
        self.state = state
        self._buffer.clear()
        self._more = False
        cursor = self._cursor
        if cursor is None or cursor.released:
            return
        cursor.released = True
        if self._release is None:
            return
        try:
            await self._release(cursor)
        except Exception as e:
            logger.warning(f"[yellow]{ResourceReleaseFailed(e)}[/yellow]")

    async def aclose(self) -> None:
        """소비 중단. 아직 끝나지 않았으면 ABANDONED로 전환하고 cursor 해제."""
        if self.state in (StreamState.CREATED, StreamState.ACTIVE):
            await self._finish(StreamState.ABANDONED)

    async def __aenter__(self) -> PagedStream[T]:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ================================================================
    # 편의 함수
    # ================================================================

    async def count(self) -> int:
        """끝까지 소비하며 개수 세기"""
        n = 0
        async for _ in self:
            n += 1
        return n

    async def to_list(self) -> list[T]:
        return [item async for item in self]
