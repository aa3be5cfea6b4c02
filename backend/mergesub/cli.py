import argparse
import asyncio
from contextlib import asynccontextmanager

from mergesub.core.config import MergeConfig, settings
from mergesub.core.logging import configure_logging
from mergesub.services.line_codec import split_lines
from mergesub.services.source_admin import (
    ChangeResult,
    add_nodes,
    add_subscriptions,
    delete_nodes,
    delete_subscriptions,
)
from mergesub.services.store import RedisStore, StoreError, build_store, resolve_sub_token
from mergesub.services.subscription_merge import merge_subscriptions, encode_output


def _report(action: str, result: ChangeResult):
    for item in result.changed:
        print(f"[{action}] {item}")
    for item in result.unchanged:
        print(f"[SKIP] {item}")
    print(f"{action.lower()}={len(result.changed)} skipped={len(result.unchanged)}")


@asynccontextmanager
async def open_store():
    store = build_store(settings)
    try:
        yield store
    finally:
        if isinstance(store, RedisStore):
            await store.close()


async def show():
    async with open_store() as store:
        data = await store.get()
    print(f"subscriptions ({len(data.subscriptions)}):")
    for s in data.subscriptions:
        print(f"  {s}")
    nodes = split_lines(data.nodes)
    print(f"nodes ({len(nodes)}):")
    for n in nodes:
        print(f"  {n}")


async def change(cmd: str, items: list[str]):
    async with open_store() as store:
        try:
            if cmd == "add-subscription":
                _report("ADDED", await add_subscriptions(store, items))
            elif cmd == "delete-subscription":
                _report("DELETED", await delete_subscriptions(store, items))
            elif cmd == "add-node":
                _report("ADDED", await add_nodes(store, items))
            elif cmd == "delete-node":
                _report("DELETED", await delete_nodes(store, items))
        except StoreError as e:
            print(f"[ERROR] {e}")
            return 1
    return 0


async def render(cfip: str | None, cfport: str | None, plain: bool):
    """Print the merged subscription exactly as /{token} would serve it."""
    async with open_store() as store:
        data = await store.get()
    cfg = MergeConfig.resolve(settings, cfip, cfport)
    text = await merge_subscriptions(
        data.subscriptions,
        data.nodes,
        cfg.relay_target,
        timeout=cfg.timeout_seconds,
        user_agent=settings.USER_AGENT,
    )
    print(text if plain else encode_output(text))


async def token():
    async with open_store() as store:
        print(await resolve_sub_token(settings, store))


def main(argv=None):
    parser = argparse.ArgumentParser(prog="mergesub")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("show")
    sub.add_parser("token")
    for name in ("add-subscription", "delete-subscription", "add-node", "delete-node"):
        p = sub.add_parser(name)
        p.add_argument("items", nargs="+")

    r = sub.add_parser("render")
    r.add_argument("--cfip")
    r.add_argument("--cfport")
    r.add_argument("--plain", action="store_true", help="print decoded text instead of base64")

    s = sub.add_parser("serve")
    s.add_argument("--host", default="0.0.0.0")
    s.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    configure_logging(settings.LOG_LEVEL)
    if args.cmd == "show":
        asyncio.run(show())
    elif args.cmd == "token":
        asyncio.run(token())
    elif args.cmd in ("add-subscription", "delete-subscription", "add-node", "delete-node"):
        if asyncio.run(change(args.cmd, args.items)):
            raise SystemExit(1)
    elif args.cmd == "render":
        asyncio.run(render(args.cfip, args.cfport, args.plain))
    elif args.cmd == "serve":
        import uvicorn

        uvicorn.run("mergesub.main:app", host=args.host, port=args.port)
    else:
        parser.print_help()

if __name__ == "__main__":
    main()
