"""비동기 bulk 인덱싱 세션

연산을 bulk_size 단위로 모아 client.bulk()로 전송한다.

    async with repo.bulk() as session:
        for i in range(2, 11):
            await session.index(f"thing_{i}", Thing(f"thing {i}"))
    # with 블록을 정상 종료하면 남은 연산도 flush
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .codec import ModelCodec
from .errors import BulkIndexingError
from .log import get_logger

logger = get_logger("bulk")


@dataclass
class BulkOperation:
    """bulk 연산 1건 (action 라인 + 선택적 source 라인)"""
    op_type: str        # "index" | "create" | "delete"
    doc_id: str
    source: dict | None = None

    def lines(self, index: str) -> list[dict]:
        action = {self.op_type: {"_index": index, "_id": self.doc_id}}
        return [action] if self.source is None else [action, self.source]


ItemCallback = Callable[[BulkOperation, dict], Any]


class AsyncBulkIndexingSession:
    """
    client: AsyncElasticsearch 또는 SuspendingClient (await client.bulk(...))

    item_callback(operation, item)은 응답의 항목마다 호출된다.
    item_callback이 없으면 실패 항목이 있을 때 flush에서 BulkIndexingError.
    """

    def __init__(
        self,
        client: Any,
        index: str,
        codec: ModelCodec,
        bulk_size: int = 100,
        refresh: str | None = None,
        item_callback: ItemCallback | None = None,
    ):
        if bulk_size < 1:
            raise ValueError(f"bulk_size는 1 이상이어야 합니다: {bulk_size}")
        self.client = client
        self.index_name = index
        self.codec = codec
        self.bulk_size = bulk_size
        self.refresh = refresh
        self.item_callback = item_callback
        self._pending: list[BulkOperation] = []
        self.indexed = 0
        self.failed = 0
        self.requests = 0

    # ================================================================
    # 연산 추가
    # ================================================================

    async def index(self, doc_id: str, obj: Any, create: bool = True):
        """create=True면 이미 존재하는 문서는 실패 (409)"""
        op_type = "create" if create else "index"
        await self._add(BulkOperation(op_type, doc_id, self.codec.serialize(obj)))

    async def delete(self, doc_id: str):
        await self._add(BulkOperation("delete", doc_id))

    async def _add(self, operation: BulkOperation):
        self._pending.append(operation)
        if len(self._pending) >= self.bulk_size:
            await self.flush()

    # ================================================================
    # 전송
    # ================================================================

    async def flush(self):
        if not self._pending:
            return
        batch, self._pending = self._pending, []

        operations: list[dict] = []
        for op in batch:
            operations.extend(op.lines(self.index_name))

        kwargs: dict = {"operations": operations}
        if self.refresh is not None:
            kwargs["refresh"] = self.refresh

        response = await self.client.bulk(**kwargs)
        self.requests += 1

        failures = []
        for op, item in zip(batch, response["items"]):
            result = item[op.op_type]
            if "error" in result:
                self.failed += 1
                failures.append({"op": op.op_type, "id": op.doc_id, "error": result["error"]})
            else:
                self.indexed += 1
            if self.item_callback is not None:
                self.item_callback(op, result)

        logger.debug(f"bulk #{self.requests}: {len(batch)}건 (실패 {len(failures)})")
        if failures and self.item_callback is None:
            raise BulkIndexingError(failures)

    async def __aenter__(self) -> AsyncBulkIndexingSession:
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            await self.flush()
            logger.info(
                f"bulk 완료: {self.indexed:,}건 성공, {self.failed:,}건 실패 "
                f"({self.requests}회 요청)"
            )
        elif self._pending:
            logger.warning(f"예외로 인해 {len(self._pending)}건 미전송: {exc}")
