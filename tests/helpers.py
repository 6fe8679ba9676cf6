"""테스트 공용 헬퍼 — 가짜 취소 핸들, ES 예외, 검색 응답"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock


class RecordingHandle:
    """cancel() 호출 횟수를 기록하는 취소 핸들"""

    def __init__(self):
        self.cancel_calls = 0
        self._lock = threading.Lock()

    def cancel(self) -> bool:
        with self._lock:
            self.cancel_calls += 1
        return True


def es_error(cls, status: int):
    """elasticsearch ApiError 하위 클래스 인스턴스 생성 (meta는 mock)"""
    return cls("error", meta=MagicMock(status=status), body={})


def hit(doc_id: str, title: str) -> dict:
    return {"_id": doc_id, "_index": "things", "_source": {"title": title}}


def search_response(hits: list[dict], scroll_id: str | None = None, total: int | None = None) -> dict:
    response = {
        "took": 3,
        "hits": {
            "total": {"value": len(hits) if total is None else total, "relation": "eq"},
            "hits": hits,
        },
    }
    if scroll_id is not None:
        response["_scroll_id"] = scroll_id
    return response
