from __future__ import annotations

import argparse
import logging
import os
import signal
import threading
import time

# Keep main minimal: wire-up config, catalog, context, harvester, shutdown
from .config import HarvesterConfig, load_config_from_env
from .context import HarvestContext
from .orchestrator import drain_and_checkpoint, harvest_loop
from .scrapers import normalize_sources
from .scrapers.extractors import PATTERNS
from .utils import proxy_sources

logger = logging.getLogger("mtproXXy.main")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(threadName)s: %(message)s",
    )


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    CLI to override environment variables. Precedence: CLI > env > defaults.
    """
    ap = argparse.ArgumentParser(
        prog="mtproXXy",
        description="Continuous MTProto proxy harvester: fetch sources -> extract -> dedup -> checkpoint.",
    )
    # Only set values when flags are provided (no default), so env/defaults remain if omitted.
    ap.add_argument("--output-dir", dest="output_dir", help="Override MTPROXXY_OUTPUT_DIR")
    ap.add_argument("--sources", dest="sources_file", help="Override MTPROXXY_SOURCES_FILE (JSON catalog)")
    ap.add_argument("--concurrency", dest="concurrent_downloads", type=int, help="Override MTPROXXY_CONCURRENT_DOWNLOADS (fetches per batch)")
    ap.add_argument("--max-threads", dest="max_threads", type=int, help="Override MTPROXXY_MAX_THREADS")
    ap.add_argument("--timeout", dest="fetch_timeout", type=float, help="Override MTPROXXY_FETCH_TIMEOUT (seconds)")
    ap.add_argument("--save-interval", dest="save_interval", type=float, help="Override MTPROXXY_SAVE_INTERVAL_SECONDS")
    ap.add_argument("--status-interval", dest="status_interval", type=float, help="Override MTPROXXY_STATUS_INTERVAL_SECONDS")
    ap.add_argument("--cycle-pause", dest="cycle_pause", type=float, help="Override MTPROXXY_CYCLE_PAUSE_SECONDS")
    ap.add_argument("--max-cycles", dest="max_cycles", type=int, help="Override MTPROXXY_MAX_CYCLES (0 = run until stopped)")
    ap.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    ap.add_argument("--log-level", dest="log_level", help="Override MTPROXXY_LOG_LEVEL")
    tls = ap.add_mutually_exclusive_group()
    tls.add_argument("--verify-ssl", dest="verify_ssl", action="store_const", const="1", help="Enforce TLS certificate verification")
    tls.add_argument("--no-verify-ssl", dest="verify_ssl", action="store_const", const="0", help="Disable TLS certificate verification (default)")
    return ap.parse_args(argv)


def _apply_cli_to_env(args: argparse.Namespace) -> None:
    cli_to_env = {
        "output_dir": "MTPROXXY_OUTPUT_DIR",
        "sources_file": "MTPROXXY_SOURCES_FILE",
        "concurrent_downloads": "MTPROXXY_CONCURRENT_DOWNLOADS",
        "max_threads": "MTPROXXY_MAX_THREADS",
        "fetch_timeout": "MTPROXXY_FETCH_TIMEOUT",
        "save_interval": "MTPROXXY_SAVE_INTERVAL_SECONDS",
        "status_interval": "MTPROXXY_STATUS_INTERVAL_SECONDS",
        "cycle_pause": "MTPROXXY_CYCLE_PAUSE_SECONDS",
        "max_cycles": "MTPROXXY_MAX_CYCLES",
        "log_level": "MTPROXXY_LOG_LEVEL",
        "verify_ssl": "MTPROXXY_VERIFY_SSL",
    }
    for attr, env_key in cli_to_env.items():
        if getattr(args, attr, None) is not None:
            os.environ[env_key] = str(getattr(args, attr))
    if getattr(args, "once", False):
        os.environ["MTPROXXY_MAX_CYCLES"] = "1"


def _banner(cfg: HarvesterConfig, n_sources: int, n_agents: int) -> None:
    border = "=" * 72
    logger.info(border)
    logger.info("= MTPROTO PROXY HARVESTER")
    logger.info("= sources=%d patterns=%d user_agents=%d", n_sources, len(PATTERNS), n_agents)
    logger.info("= capacity=%d per_fetch_cap=%d", cfg.store_capacity, cfg.fetch_batch_cap)
    logger.info("= threads=%d concurrent=%d timeout=%.0fs verify_ssl=%s", cfg.max_threads, cfg.batch_size, cfg.fetch_timeout, cfg.verify_ssl)
    logger.info("= output=%s + %s save_interval=%.0fs", cfg.json_path, cfg.text_path, cfg.save_interval_seconds)
    logger.info(border)


def main(argv: list[str] | None = None) -> int:
    args = _parse_cli_args(argv)
    _apply_cli_to_env(args)
    _setup_logging(os.environ.get("MTPROXXY_LOG_LEVEL", "INFO").upper())

    # Startup failures are fatal: nothing runs before config and catalog load cleanly
    try:
        cfg = load_config_from_env()
        catalog = proxy_sources(cfg.sources_file)
        specs = normalize_sources(catalog["sources"])
        if not specs:
            raise ValueError("source catalog is empty")
        os.makedirs(cfg.output_dir, exist_ok=True)
        ctx = HarvestContext.from_config(cfg, user_agents=catalog["user_agents"])
    except (OSError, ValueError) as e:
        logger.error("startup failed: %s", e)
        return 1

    def handle_signal(signum, _frame):
        logger.info("signal %s received, shutting down", signum)
        ctx.stop.set()

    for sig in ("SIGINT", "SIGTERM"):
        if hasattr(signal, sig):
            signal.signal(getattr(signal, sig), handle_signal)

    _banner(cfg, len(specs), len(catalog["user_agents"]))
    # Initial write so both outputs exist immediately
    ctx.checkpoint.write(ctx.store, ctx.stats)

    def _harvest() -> None:
        try:
            harvest_loop(ctx, specs)
        except Exception:
            logger.exception("harvester: crashed")
        finally:
            ctx.stop.set()

    harvester = threading.Thread(target=_harvest, name="harvester", daemon=True)
    harvester.start()

    try:
        while not ctx.stop.is_set():
            time.sleep(0.5)
    except KeyboardInterrupt:
        ctx.stop.set()

    # Shutdown
    logger.info("cleaning up...")
    drain_and_checkpoint(ctx)
    harvester.join(timeout=max(1.0, cfg.drain_timeout_seconds))

    logger.info(
        "stopped: total proxies=%d unique=%d cycles=%d (see %s and %s)",
        ctx.stats.total_proxies.get(),
        ctx.stats.unique_proxies.get(),
        ctx.stats.completed_cycles.get(),
        cfg.json_path,
        cfg.text_path,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
