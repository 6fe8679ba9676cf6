"""명시적 취소 토큰

asyncio task 취소 외에, 여러 호출을 한 번에 취소하고 싶을 때 사용.
suspend_call(..., token=token) 으로 넘기면 token.cancel() 시
대기 중인 호출의 취소 핸들이 호출되고 CancelledError로 재개된다.

사용법:
    token = CancellationToken()
    child = token.child()          # 부모 취소 시 함께 취소
    await suspend_call(start, token=child)
    token.cancel("shutdown")       # 다른 스레드에서 호출해도 안전
"""

from __future__ import annotations

import asyncio
import weakref
from threading import Lock
from typing import Callable


class CancellationToken:
    """스레드 안전한 1회성 취소 신호. 자식 토큰으로 취소가 전파된다."""

    def __init__(self, *, parent: CancellationToken | None = None):
        self._lock = Lock()
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []
        # 자식은 약한 참조: 버려진 자식 토큰은 자동으로 빠진다
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        if parent is not None:
            parent.link_child(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """취소 요청. 두 번째 호출부터는 무시."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason
            callbacks = list(self._callbacks)
            children = list(self._children)
            self._callbacks.clear()
        for callback in callbacks:
            callback()
        for child in children:
            child.cancel(reason)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        취소 시 호출될 콜백 등록.

        이미 취소된 토큰이면 즉시 호출. 등록 해제 함수를 반환.
        콜백은 cancel()을 호출한 스레드에서 실행됨.
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False
        if not registered:
            callback()

        def remove():
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return remove

    def link_child(self, token: CancellationToken) -> CancellationToken:
        with self._lock:
            self._children.add(token)
            should_cancel = self._cancelled
            reason = self._reason
        if should_cancel:
            token.cancel(reason)
        return token

    def child(self) -> CancellationToken:
        return CancellationToken(parent=self)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise asyncio.CancelledError(self._reason or "operation cancelled")

    def __repr__(self) -> str:
        return (
            f"CancellationToken(cancelled={self._cancelled}, "
            f"reason={self._reason!r}, children={len(self._children)})"
        )
