"""
Main entrypoint: historical load, then live streamer + FastAPI server on one event loop.

The historical load must succeed before anything is served; a LoadFailed
exits with status 1. Afterwards the streamer and the API run side by side:
when ingestion ends (normally or not) it is logged and the API keeps
serving the now-static store.

Env: SOLANA_RPC_URL, SOLANA_WS_URL, SOLAGG_MOCKED, SOLAGG_RPS_LIMIT, API_HOST, API_PORT, LOG_LEVEL, LOG_FORMAT.

Usage: python main.py start [--full] [--host H] [--port P]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace

# Configure structured JSON logging before other imports that may log
from solagg.solagg_logging import configure_structlog, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solagg",
        description="SolAgg is a Solana blockchain data aggregator.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, ...)")
    parser.add_argument("--log-format", default=None, choices=("json", "console"))
    sub = parser.add_subparsers(dest="command", required=True)
    start = sub.add_parser("start", help="Start SolAgg: load history, stream slots, serve queries.")
    start.add_argument(
        "--full",
        action="store_true",
        help="Load the whole current epoch instead of the short bootstrap window.",
    )
    start.add_argument("--host", default=None, help="API bind host (default: API_HOST or 127.0.0.1)")
    start.add_argument("--port", type=int, default=None, help="API port (default: API_PORT or 3666)")
    return parser


async def run(settings) -> int:
    """Load the store, then run streamer and API until the API stops."""
    import uvicorn

    from solagg.api_server.app import create_app
    from solagg.config.env import mask_api_key
    from solagg.core.exceptions import LoadFailed
    from solagg.ingestion.solana_stream import start_streamer
    from solagg.solana_listener.fetcher import SolFetcher
    from solagg.store.loader import load_transaction_store
    from solagg.store.shared import SharedStore

    logger = get_logger("main")
    logger.info(
        "main_starting",
        rpc_url=mask_api_key(settings.rpc_url),
        ws_url=mask_api_key(settings.ws_url),
        mocked=settings.mocked,
    )

    async with SolFetcher(settings.rpc_url, settings.aggregator) as fetcher:
        try:
            store = await load_transaction_store(fetcher, settings.aggregator, mocked=settings.mocked)
        except LoadFailed as e:
            logger.error("main_historical_load_failed", slot=e.slot, error=str(e))
            return 1
        shared = SharedStore(store)
        logger.info("main_store_initialized", rows=store.row_count(), current_slot=store.current_slot)

        app = create_app(shared, settings.table_name)
        server = uvicorn.Server(
            uvicorn.Config(app, host=settings.api_host, port=settings.api_port, log_level="info")
        )
        streamer = asyncio.create_task(
            start_streamer(shared, fetcher, settings.ws_url), name="streamer"
        )
        logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
        await server.serve()
        if not streamer.done():
            streamer.cancel()
    logger.info("main_exited")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_structlog(level=args.log_level, fmt=args.log_format)

    from solagg.config.settings import get_settings

    settings = get_settings()
    if args.command == "start":
        overrides = {}
        if args.full:
            overrides["mocked"] = False
        if args.host:
            overrides["api_host"] = args.host
        if args.port:
            overrides["api_port"] = args.port
        settings = replace(settings, **overrides)
        return asyncio.run(run(settings))
    return 2


if __name__ == "__main__":
    sys.exit(main())
