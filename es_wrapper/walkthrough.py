"""동기 / 콜백 / await 세 가지 호출 방식 + 비동기 repository 실습

콘솔: RichHandler (색상, 포맷) + Rich Panel/Table
파일: FileHandler (plain text + timestamp)

순서:
    [1/4] 인덱스 재생성
    [2/4] reload_search_analyzers — 세 가지 방식으로 호출
    [3/4] 단건 index + bulk + refresh + count
    [4/4] scroll 검색 → mapped_hits 개수 확인
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any

from elasticsearch import Elasticsearch
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .callbacks import CallbackClient
from .config import Config
from .log import get_logger, setup_logging
from .repository import AsyncIndexRepository
from .suspending import SuspendingClient

console = Console()
logger = get_logger("walkthrough")


@dataclass
class Thing:
    title: str


# ============================================================
# 세 가지 호출 방식
# ============================================================
async def reload_analyzers_three_ways(
    sync_client: Elasticsearch,
    callbacks: CallbackClient,
    index: str,
    timeout: float | None = None,
) -> tuple[Any, Any, Any]:
    """같은 API를 동기 / 콜백 / await 방식으로 한 번씩 호출"""
    # 1) 동기 클라이언트 그대로
    sync_response = sync_client.indices.reload_search_analyzers(index=index)
    logger.info("동기 호출 완료")

    # 2) 콜백: 결과는 워커 스레드에서 전달됨
    done = threading.Event()
    outcome: dict[str, Any] = {}

    def on_success(response):
        logger.info("it worked")
        outcome["response"] = response
        done.set()

    def on_failure(e):
        logger.warning(f"it failed: {e}")
        outcome["error"] = e
        done.set()

    callbacks.start(
        "indices.reload_search_analyzers", on_success, on_failure, index=index
    )
    # 콜백 완료 대기가 이벤트 루프를 막지 않도록 스레드로 넘김
    if not await asyncio.to_thread(done.wait, timeout):
        raise TimeoutError(f"콜백 호출이 {timeout}초 안에 끝나지 않음")
    if "error" in outcome:
        raise outcome["error"]
    callback_response = outcome.get("response")

    # 3) await: 콜백을 감싼 취소 가능 호출
    client = SuspendingClient(callbacks, timeout=timeout)
    awaited_response = await client.indices.reload_search_analyzers(index=index)
    logger.info("await 호출 완료")

    return sync_response, callback_response, awaited_response


def _summary_table(title: str, rows: list[tuple[str, str]]) -> Table:
    table = Table(title=title, show_header=False, border_style="dim")
    table.add_column("항목", style="bold")
    table.add_column("값", justify="right", style="cyan")
    for label, value in rows:
        table.add_row(label, value)
    return table


# ============================================================
# 전체 실습
# ============================================================
async def _run(config: Config, callbacks: CallbackClient, repo: AsyncIndexRepository):
    t0 = time.perf_counter()

    logger.info(f"[1/4] 인덱스 재생성: {config.index_name}")
    await repo.delete_index()
    await repo.create_index(config.schema)

    logger.info("[2/4] reload_search_analyzers — 동기 / 콜백 / await")
    await reload_analyzers_three_ways(
        callbacks.es, callbacks, config.index_name, timeout=config.request_timeout
    )

    logger.info("[3/4] index + bulk + refresh + count")
    await repo.index("thing1", Thing("The first thing"))
    async with repo.bulk() as session:
        for i in range(2, 11):
            await session.index(f"thing_{i}", Thing(f"thing {i}"))
    await repo.refresh()
    count = await repo.count()
    logger.info(f"indexed {count} items")

    logger.info("[4/4] scroll 검색")
    async with await repo.search(scrolling=True, query={"match_all": {}}) as results:
        hits = await results.mapped_hits.count()
    logger.info(f"Hits: {hits}")

    rows = [
        ("인덱스", config.index_name),
        ("count", f"{count:,}"),
        ("scroll hits", f"{hits:,}"),
        ("Wall time", f"{time.perf_counter() - t0:.2f}초"),
    ]
    console.print(_summary_table("결과 요약", rows))
    return count, hits


async def _main(config: Config):
    callbacks = CallbackClient.from_config(config)
    repo = AsyncIndexRepository.from_config(
        config,
        model_class=Thing,
        client=SuspendingClient(callbacks, timeout=config.request_timeout),
    )
    try:
        return await _run(config, callbacks, repo)
    finally:
        callbacks.close()


# ============================================================
# Public API: 동기 래퍼
# ============================================================
def run_walkthrough(config: Config):
    """실행 중인 Elasticsearch에 대해 전체 실습을 수행"""
    log_file = config.log_dir / f"walkthrough_{time.strftime('%Y%m%d_%H%M%S')}.log"
    setup_logging(log_file)
    logger.info(f"config: {config}")
    console.print(
        Panel.fit(
            "[bold]es_wrapper 실습[/] — 동기 / 콜백 / await + AsyncIndexRepository",
            border_style="green",
        )
    )
    return asyncio.run(_main(config))
