"""동기 Elasticsearch 클라이언트 → 콜백 스타일 비동기 API

Python 공식 클라이언트에는 리스너(콜백) 방식 API가 없으므로,
동기 메서드를 스레드 풀에서 실행하고 결과를 콜백으로 전달한다.
반환되는 concurrent.futures.Future가 취소 핸들 역할을 한다.

사용법:
    callbacks = CallbackClient(Elasticsearch("http://localhost:9200"))
    handle = callbacks.start(
        "indices.reload_search_analyzers",
        on_success=lambda resp: print("it worked"),
        on_failure=lambda e: print("it failed"),
        index="myindex",
    )
    handle.cancel()   # 아직 실행 전이면 취소됨 → on_failure(CancelledError)
"""

from __future__ import annotations

from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Any, Callable, Protocol

from elasticsearch import Elasticsearch

from .config import Config, build_sync_client
from .log import get_logger

logger = get_logger("callbacks")

OnSuccess = Callable[[Any], None]
OnFailure = Callable[[BaseException], None]


class Cancellable(Protocol):
    """진행 중인 호출의 취소 핸들"""

    def cancel(self) -> bool: ...


class CallbackClient:
    """
    동기 클라이언트 메서드를 스레드 풀에서 실행하는 콜백 클라이언트.

    method는 점으로 구분된 경로: "search", "indices.create",
    "indices.reload_search_analyzers" 등. 성공/실패 콜백은
    워커 스레드에서 호출된다.
    """

    def __init__(
        self,
        es: Elasticsearch,
        executor: ThreadPoolExecutor | None = None,
        max_workers: int = 4,
    ):
        self.es = es
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="es-callback"
        )

    @classmethod
    def from_config(cls, config: Config) -> CallbackClient:
        return cls(build_sync_client(config), max_workers=config.callback_workers)

    def resolve(self, method: str) -> Callable[..., Any]:
        """ "indices.create" → self.es.indices.create. 없으면 AttributeError."""
        target: Any = self.es
        for part in method.split("."):
            if part.startswith("_"):
                raise AttributeError(f"비공개 API는 호출할 수 없습니다: {method}")
            target = getattr(target, part)
        if not callable(target):
            raise AttributeError(f"호출 가능한 API가 아닙니다: {method}")
        return target

    def start(
        self,
        method: str,
        on_success: OnSuccess,
        on_failure: OnFailure,
        **kwargs: Any,
    ) -> Future:
        """호출을 시작하고 취소 핸들(Future)을 즉시 반환"""
        fn = self.resolve(method)

        def run():
            try:
                response = fn(**kwargs)
            except Exception as e:
                logger.debug(f"{method} 실패: {type(e).__name__}: {e}")
                on_failure(e)
                return
            on_success(response)

        fut = self._executor.submit(run)

        def on_done(f: Future):
            # 실행 전에 취소된 작업 (Future.cancel, close) 은 run()이 돌지 않음
            if f.cancelled():
                logger.debug(f"{method} 실행 전 취소")
                on_failure(CancelledError(f"{method} 실행 전 취소됨"))

        fut.add_done_callback(on_done)
        return fut

    def close(self):
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        self.es.close()
