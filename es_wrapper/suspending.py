"""
콜백 호출 → await 가능한 취소 가능 호출

    start(on_success, on_failure) -> 취소 핸들

형태의 비동기 호출을 하나의 await 지점으로 바꾼다.

  - 성공 콜백의 값으로 재개, 실패 콜백은 OperationFailed(cause)로 전달
  - 호출 task가 취소되면 (wait_for 타임아웃, TaskGroup 종료, token.cancel())
    취소 핸들을 1회 호출하고 하위 작업의 종료를 기다리지 않고 CancelledError로 재개
  - 콜백은 임의의 스레드에서 불려도 되며, 재개는 call_soon_threadsafe로
    대기 중인 이벤트 루프에 넘긴다

사용법:
    response = await suspend_call(
        lambda ok, fail: callbacks.start("indices.refresh", ok, fail, index="things")
    )

    # 모든 API를 await 형태로
    client = SuspendingClient(callbacks, timeout=10)
    await client.indices.reload_search_analyzers(index="myindex")
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Any, Callable

from .callbacks import Cancellable, CallbackClient, OnFailure, OnSuccess
from .cancellation import CancellationToken
from .errors import OperationFailed
from .log import get_logger

logger = get_logger("suspending")

StartFn = Callable[[OnSuccess, OnFailure], Cancellable | None]


class State(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PendingOperation:
    """
    진행 중인 호출 1건.

    완료 슬롯은 _claim()으로 정확히 한 번만 확정된다. 성공/실패 콜백과
    취소 중 먼저 claim한 쪽이 이기고 나머지는 무시된다.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future):
        self._loop = loop
        self._future = future
        self._lock = threading.Lock()
        self._handle: Cancellable | None = None
        self.state = State.PENDING

    def attach(self, handle: Cancellable | None) -> None:
        with self._lock:
            if self.state is State.PENDING:
                self._handle = handle
                return
            cancelled = self.state is State.CANCELLED
        if cancelled and handle is not None:
            handle.cancel()

    def _claim(self, state: State) -> bool:
        with self._lock:
            if self.state is not State.PENDING:
                return False
            self.state = state
            handle, self._handle = self._handle, None
        if state is State.CANCELLED and handle is not None:
            handle.cancel()
        return True

    def resolve(self, value: Any) -> None:
        """성공 콜백 (임의 스레드)"""
        if self._claim(State.COMPLETED):
            self.call_in_loop(self._set_result, value)

    def reject(self, cause: BaseException) -> None:
        """실패 콜백 (임의 스레드)"""
        if self._claim(State.FAILED):
            self.call_in_loop(self._set_exception, OperationFailed(cause))

    def cancel(self) -> bool:
        """취소 확정 + 취소 핸들 호출. 이미 완료됐으면 False."""
        return self._claim(State.CANCELLED)

    def call_in_loop(self, fn: Callable[[Any], None], arg: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(fn, arg)
        except RuntimeError:
            # 이벤트 루프가 이미 닫힘, 기다리는 쪽이 없음
            logger.debug(f"루프 종료 후 완료 신호 무시: {self.state.value}")

    def _set_result(self, value: Any) -> None:
        if not self._future.done():
            self._future.set_result(value)

    def _set_exception(self, exc: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(exc)


async def suspend_call(start: StartFn, *, token: CancellationToken | None = None) -> Any:
    """start를 정확히 한 번 호출하고 콜백 결과가 올 때까지 대기"""
    if token is not None:
        token.raise_if_cancelled()

    loop = asyncio.get_running_loop()
    future = loop.create_future()
    op = PendingOperation(loop, future)

    try:
        handle = start(op.resolve, op.reject)
    except Exception as e:
        raise OperationFailed(e) from e
    op.attach(handle)

    unregister = None
    if token is not None:
        def on_token_cancel():
            if op.cancel():
                op.call_in_loop(lambda _: future.cancel(), None)

        unregister = token.add_callback(on_token_cancel)

    try:
        return await future
    except asyncio.CancelledError:
        if op.cancel():
            logger.debug("대기 중 취소 — 취소 핸들 호출")
        raise
    finally:
        if unregister is not None:
            unregister()


class _SuspendingApi:
    """SuspendingClient 하위 네임스페이스 ("indices", "cluster" ...)"""

    def __init__(self, root: SuspendingClient, path: tuple[str, ...]):
        self._root = root
        self._path = path

    def __getattr__(self, name: str) -> _SuspendingApi:
        if name.startswith("_"):
            raise AttributeError(name)
        return _SuspendingApi(self._root, self._path + (name,))

    async def __call__(self, **kwargs: Any) -> Any:
        return await self._root.call(".".join(self._path), **kwargs)

    def __repr__(self) -> str:
        return f"<suspending {'.'.join(self._path)}>"


class SuspendingClient:
    """
    CallbackClient의 모든 API를 await 형태로 노출하는 동적 프록시.

    API별 래퍼 코드를 생성하는 대신 속성 경로를 그대로
    CallbackClient.start()의 method로 넘긴다.

        client = SuspendingClient(callbacks)
        await client.search(index="things", query={"match_all": {}})
        await client.indices.create(index="things", mappings={...})

    timeout(초)을 주면 asyncio.wait_for로 deadline을 걸고,
    초과 시 하위 호출을 취소하고 TimeoutError를 올린다.
    """

    def __init__(
        self,
        callbacks: CallbackClient,
        token: CancellationToken | None = None,
        timeout: float | None = None,
    ):
        self.callbacks = callbacks
        self.token = token
        self.timeout = timeout

    def __getattr__(self, name: str) -> _SuspendingApi:
        if name.startswith("_"):
            raise AttributeError(name)
        return _SuspendingApi(self, (name,))

    async def call(self, method: str, **kwargs: Any) -> Any:
        call = suspend_call(
            lambda ok, fail: self.callbacks.start(method, ok, fail, **kwargs),
            token=self.token,
        )
        if self.timeout is None:
            return await call
        return await asyncio.wait_for(call, self.timeout)

    async def close(self):
        self.callbacks.close()
