"""Stress scenarios against a running stack (not collected by pytest).

    python tests/run_tests.py --baseline 20 --gremlin 20 --schrodinger 20
"""
import argparse
import os
import statistics
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import requests

ORDER_URL = os.environ.get("ORDER_SERVICE_URL", "http://localhost:8000")
INVENTORY_URL = os.environ.get("INVENTORY_SERVICE_URL", "http://localhost:8001")
ITEM_ID = "SKU-1"


def _post(url: str, payload: dict, timeout: float = 10) -> requests.Response:
    return requests.post(url, json=payload, timeout=timeout)


def _stock() -> int:
    return requests.get(f"{INVENTORY_URL}/inventory/{ITEM_ID}", timeout=5).json()["stock"]


def _place(i: int) -> tuple[str, int, str | None]:
    started = time.time()
    resp = _post(f"{ORDER_URL}/orders", {"itemId": ITEM_ID, "quantity": 1})
    elapsed = int((time.time() - started) * 1000)
    return resp.json().get("status", f"HTTP {resp.status_code}"), elapsed, resp.json().get("orderId")


def _run_orders(label: str, count: int, concurrency: int) -> list:
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        results = list(pool.map(_place, range(count)))
    statuses = Counter(status for status, _, _ in results)
    _print_stats(label, [elapsed for _, elapsed, _ in results])
    print(f"  outcomes: {dict(statuses)}")
    return results


def _wait_for_ledger(order_ids: list, timeout_s: float = 30) -> int:
    deadline = time.time() + timeout_s
    pending = set(order_ids)
    while pending and time.time() < deadline:
        pending = {
            oid for oid in pending
            if requests.get(f"{INVENTORY_URL}/ledger/{oid}", timeout=5).status_code != 200
        }
        time.sleep(1)
    return len(order_ids) - len(pending)


def baseline_test(count: int) -> None:
    # No injected latency or crash.
    _post(f"{INVENTORY_URL}/chaos/gremlin", {"enabled": False})
    _post(f"{INVENTORY_URL}/chaos/schrodinger", {"enabled": False})
    _run_orders("baseline", count, concurrency=5)


def gremlin_test(count: int) -> None:
    # 3-4s latency against a 2s deadline: every order should fall back to the queue.
    before = _stock()
    _post(f"{INVENTORY_URL}/chaos/gremlin", {"enabled": True, "minLatencyMs": 3000, "maxLatencyMs": 4000})
    try:
        results = _run_orders("gremlin", count, concurrency=10)
    finally:
        _post(f"{INVENTORY_URL}/chaos/gremlin", {"enabled": False})

    pending = [oid for status, _, oid in results if status == "PENDING_VERIFICATION"]
    verified = _wait_for_ledger(pending)
    time.sleep(5)  # let the abandoned synchronous calls land
    print(f"  verified {verified}/{len(pending)} pending orders")
    print(f"  stock {before} -> {_stock()} (expected decrement {count})")


def schrodinger_test(count: int) -> None:
    # Commits that never confirm: stock moves even for orders reported FAILED.
    before = _stock()
    _post(f"{INVENTORY_URL}/chaos/schrodinger", {"enabled": True, "probability": 0.5})
    try:
        results = _run_orders("schrodinger", count, concurrency=5)
    finally:
        _post(f"{INVENTORY_URL}/chaos/schrodinger", {"enabled": False})

    recorded = _wait_for_ledger([oid for _, _, oid in results if oid], timeout_s=5)
    print(f"  ledger entries {recorded}, stock {before} -> {_stock()}")


def _print_stats(label: str, latencies: list[int]) -> None:
    if not latencies:
        print(f"{label}: no requests")
        return
    p50 = int(statistics.median(latencies))
    p95 = int(statistics.quantiles(latencies, n=20)[18]) if len(latencies) >= 20 else max(latencies)
    avg = int(statistics.mean(latencies))
    print(f"{label} avg={avg}ms p50={p50}ms p95={p95}ms (n={len(latencies)})")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--baseline", type=int, default=0)
    parser.add_argument("--gremlin", type=int, default=0)
    parser.add_argument("--schrodinger", type=int, default=0)
    args = parser.parse_args()

    if args.baseline:
        baseline_test(args.baseline)
    if args.gremlin:
        gremlin_test(args.gremlin)
    if args.schrodinger:
        schrodinger_test(args.schrodinger)

    if not (args.baseline or args.gremlin or args.schrodinger):
        print("Usage: python run_tests.py --baseline N | --gremlin N | --schrodinger N")


if __name__ == "__main__":
    main()
