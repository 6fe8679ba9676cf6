"""Elasticsearch 래퍼 설정 + 클라이언트 생성"""

from dataclasses import dataclass, field
from pathlib import Path

from elasticsearch import AsyncElasticsearch, Elasticsearch

# ── 커스텀 스키마가 없을 때 사용되는 기본 스키마 ──
DEFAULT_SCHEMA = {
    "settings": {
        "index": {
            "number_of_shards": 3,
            "number_of_replicas": 0,
            "blocks": {"read_only_allow_delete": "false"},
        }
    },
    "mappings": {
        "properties": {
            "title": {"type": "text"},
        }
    },
}


@dataclass
class Config:
    # Elasticsearch 연결
    es_url: str = "http://localhost:9200"
    es_nodes: list[str] | None = None       # 클러스터 노드 목록 (설정 시 es_url 무시)
    es_fingerprint: str | None = None       # TLS 인증서 SHA-256 fingerprint (클러스터 시 필수)
    es_username: str | None = None          # Basic Auth 사용자명
    es_password: str | None = None          # Basic Auth 비밀번호
    es_api_key: str | None = None           # API Key (basic_auth 대신 사용 가능)

    # 인덱스
    index_name: str = "things"
    schema: dict | None = None      # None → DEFAULT_SCHEMA 사용
    refresh_allowed: bool = False   # repository.refresh() 허용 여부 (테스트/데모용)

    # 페이징 (scroll)
    page_size: int = 100
    scroll_ttl: str = "1m"

    # 벌크
    bulk_size: int = 100

    # 콜백 클라이언트
    callback_workers: int = 4       # 콜백 실행용 스레드 수
    request_timeout: float | None = None  # await 호출 deadline (초, None=무제한)

    # 로그
    log_dir: Path = field(default_factory=lambda: Path("logs"))


def _client_kwargs(config: Config) -> dict:
    """sync / async 클라이언트 공통 연결 인자.

    - 단일 노드 (HTTP): es_url 사용, fingerprint 불필요
    - 클러스터 (HTTPS): es_nodes 사용, fingerprint + 인증 필수
    """
    hosts = config.es_nodes or [config.es_url]
    is_cluster = config.es_nodes is not None

    if is_cluster:
        if not config.es_fingerprint:
            raise ValueError(
                "--es_fingerprint 필수: 클러스터 연결에는 "
                "TLS 인증서 fingerprint가 필요합니다."
            )
        if not config.es_api_key and not (config.es_username and config.es_password):
            raise ValueError(
                "인증 정보 필수: --es_api_key 또는 "
                "--es_username + --es_password를 지정하세요."
            )

    kwargs: dict = {"hosts": hosts}

    # 인증: API Key 우선, 없으면 Basic Auth
    if config.es_api_key:
        kwargs["api_key"] = config.es_api_key
    elif config.es_username and config.es_password:
        kwargs["basic_auth"] = (config.es_username, config.es_password)

    # TLS: fingerprint가 CA 체인 검증을 대체
    if config.es_fingerprint:
        kwargs["ssl_assert_fingerprint"] = config.es_fingerprint
        kwargs["verify_certs"] = False

    return kwargs


def build_es_client(config: Config) -> AsyncElasticsearch:
    """Config 기반 AsyncElasticsearch 생성 (repository 기본 클라이언트).

    Examples:
        # 로컬 개발
        config = Config(es_url="http://localhost:9200")

        # 클러스터 + fingerprint
        config = Config(
            es_nodes=["https://es01:9200", "https://es02:9200"],
            es_fingerprint="B1:2A:...:CF",
            es_username="elastic",
            es_password="changeme",
        )
    """
    return AsyncElasticsearch(**_client_kwargs(config))


def build_sync_client(config: Config) -> Elasticsearch:
    """Config 기반 동기 Elasticsearch 생성 (CallbackClient / 동기 호출용)."""
    return Elasticsearch(**_client_kwargs(config))
