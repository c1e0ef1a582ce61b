"""SignalForge — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
one-shot directory scans and the API server.
"""

import logging

from fastapi import FastAPI

from signalforge.api.routers import router

app = FastAPI(title="SignalForge Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("signalforge")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def load_universe(directory) -> dict:
    """Read every ``<SYMBOL>.json`` candle file in *directory*.

    Files that cannot be parsed are logged and skipped.
    """
    import json
    import pathlib

    from signalforge.models.candle import candles_from_payload

    universe = {}
    for path in sorted(pathlib.Path(directory).glob("*.json")):
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
            universe[path.stem.upper()] = candles_from_payload(rows)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Skipping %s: %s", path.name, exc)
    return universe


def _run_cli(argv=None) -> int:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import argparse
    import asyncio
    import json
    from dataclasses import asdict

    from signalforge.api.routers import configure_routers
    from signalforge.config import load_config
    from signalforge.pipeline.scanner import scan

    parser = argparse.ArgumentParser(description="SignalForge signal scanner")
    sub = parser.add_subparsers(dest="command", required=True)

    scan_parser = sub.add_parser("scan", help="Scan a directory of <SYMBOL>.json candle files")
    scan_parser.add_argument("directory", help="Directory holding candle JSON files")
    scan_parser.add_argument("--env", help="Path to a .env file")
    scan_parser.add_argument("--settings", help="Path to a JSON settings file")
    scan_parser.add_argument(
        "--json", action="store_true", help="Print the full result as JSON"
    )

    serve_parser = sub.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, help="Port (default: API_PORT or 8080)")
    serve_parser.add_argument("--env", help="Path to a .env file")
    serve_parser.add_argument("--settings", help="Path to a JSON settings file")

    args = parser.parse_args(argv)

    config = load_config(env_path=args.env, settings_path=args.settings)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        configure_routers(config)
        port = args.port or config.api_port
        logger.info("Starting SignalForge API on %s:%d", args.host, port)
        uvicorn.run(app, host=args.host, port=port, log_level=config.log_level.lower())
        return 0

    universe = load_universe(args.directory)
    if not universe:
        logger.error("No candle files found in %s", args.directory)
        return 1

    result = asyncio.run(scan(universe, config))
    for rank, signal in enumerate(result.signals, start=1):
        logger.info(
            "#%d %s %s score=%.1f strategy=%s regime=%s",
            rank, signal.symbol, signal.side, signal.score,
            signal.strategy_id, signal.regime,
        )
    for discard in result.discards:
        logger.info("discard %s [%s]: %s", discard.symbol, discard.stage, discard.reason)

    if args.json:
        print(json.dumps(
            {
                "signals": [asdict(s) for s in result.signals],
                "discards": [asdict(d) for d in result.discards],
            },
            indent=2,
        ))
    return 0


if __name__ == "__main__":
    raise SystemExit(_run_cli())
