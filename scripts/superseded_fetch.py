#!/usr/bin/env python3
"""Walk through the async task lifecycle against a simulated slow backend.

Two lookups for the same category are started; the older one answers last.
The store ends up holding the newest answer and the manager counts one
stale result.  A third lookup is aborted half way through.

Usage::

    python scripts/superseded_fetch.py --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pydux import (  # noqa: E402
    LifecycleManager,
    Store,
    StoreConfig,
    TaskContext,
    combine_reducers,
    create_async_task,
    task_table_reducer,
)

_USERS = {1: "Ada Lovelace", 2: "Grace Hopper", 3: "Edsger Dijkstra"}


async def _fetch_user(user_id: int, ctx: TaskContext) -> dict[str, Any]:
    delay = ctx.extra["delays"].get(user_id, 0.05)
    try:
        await asyncio.wait_for(ctx.signal.wait(), timeout=delay)
    except TimeoutError:
        return {"id": user_id, "name": _USERS[user_id]}
    ctx.signal.raise_if_aborted()
    return {}


fetch_user = create_async_task("users/fetchById", _fetch_user)


def _print_record(store: Store, label: str) -> None:
    record = store.get_state()["tasks"].get(fetch_user.category)
    print(f"{label:<28} {record!r}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Demonstrate superseded and aborted async tasks.")
    parser.add_argument("--slow", type=float, default=0.3, help="Delay of the superseded request (seconds)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    store = Store(
        combine_reducers({"tasks": task_table_reducer}),
        config=StoreConfig.from_env(log_actions=args.verbose),
    )
    manager = LifecycleManager(store, extra={"delays": {1: args.slow, 2: 0.05, 3: 1.0}})

    older = fetch_user.run(manager, 1)
    newer = fetch_user.run(manager, 2, allow_reentry=True)
    _print_record(store, "both requests issued:")
    await newer
    _print_record(store, "newer request answered:")
    await older
    _print_record(store, "older request answered:")
    print(f"stale results dropped: {manager.stale_results}")

    aborted = fetch_user.run(manager, 3)
    await asyncio.sleep(0.05)
    aborted.abort("user navigated away")
    await aborted
    _print_record(store, "third request aborted:")

    store.close()


if __name__ == "__main__":
    asyncio.run(main())
