"""
Command line entry point.

    fulfillment serve order --port 8080
    fulfillment serve inventory --port 8081
    fulfillment serve payment --port 8082
    fulfillment seed-inventory p1=5 p2=10
"""

import argparse
import asyncio
import logging

import uvicorn

from fulfillment.common.log import configure_logging

logger = logging.getLogger(__name__)

SERVICES = {
    "order": ("fulfillment.order.main:app", 8080),
    "inventory": ("fulfillment.inventory.main:app", 8081),
    "payment": ("fulfillment.payment.main:app", 8082),
}


def _parse_seed(value: str) -> tuple[str, int]:
    product_id, sep, quantity = value.partition("=")
    if not sep or not product_id:
        raise argparse.ArgumentTypeError(f"expected PRODUCT=QUANTITY, got {value!r}")
    try:
        qty = int(quantity)
    except ValueError:
        raise argparse.ArgumentTypeError(f"quantity must be an integer: {value!r}") from None
    if qty < 0:
        raise argparse.ArgumentTypeError(f"quantity must not be negative: {value!r}")
    return product_id, qty


async def seed_inventory(rows: list[tuple[str, int]]) -> None:
    from fulfillment.inventory.main import DATABASE_URL
    from fulfillment.inventory.store import build_inventory_store

    store = build_inventory_store(DATABASE_URL)
    await store.open()
    try:
        for product_id, quantity in rows:
            await store.seed(product_id, quantity)
            logger.info("seeded %s=%d", product_id, quantity)
    finally:
        await store.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fulfillment", description="Order fulfillment saga services.")
    sub = p.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run one service with uvicorn")
    serve.add_argument("service", choices=sorted(SERVICES))
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None, help="Defaults to 8080/8081/8082")

    seed = sub.add_parser("seed-inventory", help="Upsert inventory rows into the configured store")
    seed.add_argument("rows", nargs="+", type=_parse_seed, metavar="PRODUCT=QUANTITY")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "serve":
        target, default_port = SERVICES[args.service]
        uvicorn.run(target, host=args.host, port=args.port or default_port)
    elif args.command == "seed-inventory":
        asyncio.run(seed_inventory(args.rows))


if __name__ == "__main__":
    main()
