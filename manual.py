#!/usr/bin/env python3
# manual.py
"""
es_wrapper 실습 실행 (CLI 엔트리포인트)

사전 조건:
  Elasticsearch:  docker compose up -d

실행:
  # 로컬 단일 노드
  python manual.py
  python manual.py --index asyncthings --bulk_size 5 --page_size 3

  # 호출 deadline (초), 초과 시 하위 호출 취소
  python manual.py --timeout 10

  # 클러스터 + fingerprint 인증
  python manual.py \\
      --es_nodes https://es01:9200 https://es02:9200 \\
      --es_fingerprint "B1:2A:96:..." \\
      --es_username elastic --es_password changeme
"""

import argparse
import json
from pathlib import Path

from es_wrapper import Config, run_walkthrough


def main():
    parser = argparse.ArgumentParser(
        description="동기 / 콜백 / await 호출 + AsyncIndexRepository 실습"
    )
    parser.add_argument("--index", default="things")
    parser.add_argument("--es_url", default="http://localhost:9200")
    parser.add_argument(
        "--schema", type=Path, default=None,
        help="커스텀 스키마 JSON 파일 경로 (미지정 시 기본 스키마)",
    )

    # ── 페이징 / bulk ──
    paging = parser.add_argument_group("페이징 / bulk")
    paging.add_argument("--page_size", type=int, default=100, help="scroll 페이지 크기")
    paging.add_argument("--scroll_ttl", default="1m", help="scroll 유지 시간")
    paging.add_argument("--bulk_size", type=int, default=100, help="bulk 요청당 연산 수")

    # ── 콜백 클라이언트 ──
    cb = parser.add_argument_group("콜백 클라이언트")
    cb.add_argument("--callback_workers", type=int, default=4, help="콜백 스레드 수")
    cb.add_argument(
        "--timeout", type=float, default=None,
        help="await 호출 deadline (초, 미지정 시 무제한)",
    )

    # ── ES 클러스터 연결 ──
    cluster = parser.add_argument_group("ES 클러스터 연결")
    cluster.add_argument(
        "--es_nodes", nargs="+", default=None,
        help="클러스터 노드 URL 목록 (설정 시 --es_url 무시)",
    )
    cluster.add_argument(
        "--es_fingerprint", default=None,
        help="TLS 인증서 SHA-256 fingerprint (--es_nodes 사용 시 필수)",
    )
    cluster.add_argument("--es_username", default=None, help="Basic Auth 사용자명")
    cluster.add_argument("--es_password", default=None, help="Basic Auth 비밀번호")
    cluster.add_argument(
        "--es_api_key", default=None,
        help="API Key (--es_username/--es_password 대신 사용)",
    )
    parser.add_argument("--log_dir", type=Path, default=Path("logs"))

    args = parser.parse_args()

    schema = None
    if args.schema:
        schema = json.loads(args.schema.read_text(encoding="utf-8"))

    config = Config(
        es_url=args.es_url,
        es_nodes=args.es_nodes,
        es_fingerprint=args.es_fingerprint,
        es_username=args.es_username,
        es_password=args.es_password,
        es_api_key=args.es_api_key,
        index_name=args.index,
        schema=schema,
        refresh_allowed=True,  # 실습에서는 refresh로 즉시 검색 가능하게
        page_size=args.page_size,
        scroll_ttl=args.scroll_ttl,
        bulk_size=args.bulk_size,
        callback_workers=args.callback_workers,
        request_timeout=args.timeout,
        log_dir=args.log_dir,
    )
    run_walkthrough(config)


if __name__ == "__main__":
    main()
