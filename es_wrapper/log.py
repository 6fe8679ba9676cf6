"""
패키지 통합 로깅 설정 (Rich console + plain-text file)

설계:
  - Console: RichHandler (colored, timestamps, markup 지원)
  - File:    FileHandler (plain text, Rich markup 자동 제거)

사용법:
    from .log import setup_logging, get_logger

    logger = get_logger("paging")       # es_wrapper.paging
    setup_logging(log_file=Path("x.log"))
    logger.info("[bold green]완료![/bold green]")
"""

import logging
from pathlib import Path

from rich.errors import MarkupError
from rich.logging import RichHandler
from rich.text import Text

PKG = "es_wrapper"

# elasticsearch-py 8 의 HTTP 요청 로그 (요청마다 INFO 1줄)
TRANSPORT_LOGGER = "elastic_transport"


class _PlainFormatter(logging.Formatter):
    """Rich markup 태그를 제거하는 FileHandler용 Formatter.

    예: "[bold green]완료![/bold green]" → "완료!"
    """

    def format(self, record: logging.LogRecord) -> str:
        original_msg = record.msg
        try:
            record.msg = Text.from_markup(str(record.msg)).plain
        except MarkupError:
            pass  # markup 파싱 실패 시 원본 유지
        try:
            return super().format(record)
        finally:
            record.msg = original_msg


def setup_logging(
    log_file: Path | None = None,
    level: int = logging.INFO,
    transport_level: int = logging.WARNING,
) -> logging.Logger:
    """
    패키지 루트 로거에 핸들러를 설정.

    - RichHandler: 첫 호출 시 1회만 추가
    - FileHandler: log_file 인자가 있을 때마다 추가
    - elastic_transport 로거: transport_level로 조정 (scroll 페이지마다
      요청 로그가 찍히므로 기본은 WARNING)

    Returns:
        패키지 루트 로거
    """
    logger = logging.getLogger(PKG)
    logger.setLevel(level)
    logging.getLogger(TRANSPORT_LOGGER).setLevel(transport_level)

    has_rich = any(isinstance(h, RichHandler) for h in logger.handlers)
    if not has_rich:
        console = RichHandler(
            rich_tracebacks=True,
            show_path=False,
            markup=True,
            log_time_format="[%H:%M:%S]",
        )
        console.setLevel(level)
        logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(_PlainFormatter("%(asctime)s  %(name)s  %(message)s"))
        fh.setLevel(level)
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    패키지 하위 로거 반환.

    예: get_logger("paging") → logging.getLogger("es_wrapper.paging")
    """
    return logging.getLogger(f"{PKG}.{name}")
