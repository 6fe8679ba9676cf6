"""공용 fixture — 취소 핸들, AsyncElasticsearch mock"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from .helpers import RecordingHandle


@pytest.fixture()
def handle() -> RecordingHandle:
    return RecordingHandle()


@pytest.fixture()
def async_client() -> MagicMock:
    """AsyncElasticsearch 흉내, 사용하는 API만 AsyncMock으로"""
    client = MagicMock()
    for name in ("index", "get", "mget", "delete", "count", "search", "scroll",
                 "clear_scroll", "bulk", "close"):
        setattr(client, name, AsyncMock())
    for name in ("create", "delete", "refresh"):
        setattr(client.indices, name, AsyncMock())
    return client
