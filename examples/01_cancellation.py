#!/usr/bin/env python3
"""
취소 / 타임아웃 / scroll 중단 예시 — 실행 중인 Elasticsearch 필요

항목:
  1. asyncio.wait_for deadline → 하위 호출 취소 + TimeoutError
  2. CancellationToken — 여러 호출을 한 번에 취소
  3. scroll 검색을 중간에 중단 → clear_scroll 1회

실행:
  python manual.py            # things 인덱스 준비
  python examples/01_cancellation.py --es_url http://localhost:9200
"""

import argparse
import asyncio

from es_wrapper import (
    AsyncIndexRepository,
    CallbackClient,
    CancellationToken,
    Config,
    SuspendingClient,
    setup_logging,
)


async def deadline_example(callbacks: CallbackClient):
    print("=" * 60)
    print("[1] deadline — wait_for")
    print("=" * 60)
    client = SuspendingClient(callbacks, timeout=0.001)
    try:
        await client.cluster.health(wait_for_status="green", timeout="5s")
        print("  (응답이 deadline보다 빨랐음)")
    except asyncio.TimeoutError:
        print("  TimeoutError — 하위 호출에 취소 요청됨")


async def token_example(callbacks: CallbackClient, index: str):
    print("=" * 60)
    print("[2] CancellationToken — 일괄 취소")
    print("=" * 60)
    token = CancellationToken()
    client = SuspendingClient(callbacks, token=token.child())
    calls = [
        asyncio.create_task(client.count(index=index)),
        asyncio.create_task(client.cluster.health(wait_for_status="green", timeout="5s")),
    ]
    token.cancel("example shutdown")
    results = await asyncio.gather(*calls, return_exceptions=True)
    for r in results:
        print(f"  {type(r).__name__}")


async def abandon_example(config: Config):
    print("=" * 60)
    print("[3] scroll 중단")
    print("=" * 60)
    repo = AsyncIndexRepository.from_config(config)
    try:
        results = await repo.search(scrolling=True, size=2)
        print(f"  total_hits={results.total_hits}")
        async with results.hits as hits:
            async for hit in hits:
                print(f"  첫 hit: {hit['_id']} — 여기서 중단")
                break
        print(f"  stream state: {hits.state.value}")
    finally:
        await repo.close()


async def main(config: Config):
    callbacks = CallbackClient.from_config(config)
    try:
        await deadline_example(callbacks)
        await token_example(callbacks, config.index_name)
    finally:
        callbacks.close()
    await abandon_example(config)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--es_url", default="http://localhost:9200")
    parser.add_argument("--index", default="things")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(Config(es_url=args.es_url, index_name=args.index)))
