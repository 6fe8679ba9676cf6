"""래퍼 예외 계층

취소는 별도 타입 없이 asyncio.CancelledError를 그대로 사용.
"""

from __future__ import annotations


class EsWrapperError(Exception):
    """es_wrapper 예외 베이스"""


class OperationFailed(EsWrapperError):
    """콜백 호출의 실패 콜백이 불림. 원인은 .cause (및 __cause__)"""

    def __init__(self, cause: BaseException):
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause
        self.__cause__ = cause


class StreamClosed(EsWrapperError):
    """닫힌(실패/중단된) 스트림을 다시 진행하려 함"""


class ResourceReleaseFailed(EsWrapperError):
    """scroll 해제 실패. 로그로만 기록되고 raise되지 않음"""

    def __init__(self, cause: BaseException):
        super().__init__(f"scroll 해제 실패 — {type(cause).__name__}: {cause}")
        self.cause = cause
        self.__cause__ = cause


class RefreshNotAllowed(EsWrapperError):
    """refresh_allowed=False인 repository에서 refresh() 호출"""


class BulkIndexingError(EsWrapperError):
    """bulk 요청 중 일부 문서가 실패 (item_callback 미지정 시)"""

    def __init__(self, failures: list[dict]):
        super().__init__(f"Bulk index errors: {len(failures)} failures")
        self.failures = failures


def unwrap(exc: BaseException) -> BaseException:
    """OperationFailed이면 원인 예외를, 아니면 자기 자신을 반환"""
    while isinstance(exc, OperationFailed):
        exc = exc.cause
    return exc
