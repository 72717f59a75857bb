from __future__ import annotations

import logging
import random
import threading
import time
from typing import List, Optional, Sequence

from .context import HarvestContext
from .scrapers import SourceSpec, StaticUrlScraper
from .status import display_statistics

logger = logging.getLogger("mtproXXy.orchestrator")


def _worker(ctx: HarvestContext, scraper: StaticUrlScraper) -> None:
    try:
        scraper.scrape(ctx)
    except Exception:
        # Never crash the batch
        logger.exception("worker: unexpected failure for %s", scraper.task.url)
    finally:
        ctx.stats.active_workers.dec()


def _stagger(ctx: HarvestContext) -> None:
    base = int(ctx.config.launch_stagger_ms)
    if base > 0:
        ctx.stop.wait((base + random.randrange(15)) / 1000.0)


def run_batch(ctx: HarvestContext, scrapers: Sequence[StaticUrlScraper]) -> int:
    """
    Launch one thread per scraper, then join them all before returning.
    Returns the number of threads that were started.
    """
    threads: List[threading.Thread] = []
    for s in scrapers:
        if ctx.cancelled():
            break
        ctx.stats.active_workers.inc()
        t = threading.Thread(target=_worker, name=f"fetch-{len(threads)}", args=(ctx, s), daemon=True)
        try:
            t.start()
        except RuntimeError as e:
            ctx.stats.active_workers.dec()
            logger.error("batch: could not start worker for %s: %s", s.task.url, e)
            continue
        threads.append(t)
        _stagger(ctx)
    for t in threads:
        t.join()
    return len(threads)


def run_cycle(ctx: HarvestContext, specs: Sequence[SourceSpec]) -> int:
    """
    One pass over the catalog in sequential batches of `config.batch_size`.
    Returns the store growth over the cycle; only computed once every batch has joined.
    """
    before = ctx.store.size()
    batch_size = ctx.config.batch_size
    for i in range(0, len(specs), batch_size):
        if ctx.cancelled():
            break
        batch = [StaticUrlScraper(spec) for spec in specs[i:i + batch_size]]
        run_batch(ctx, batch)
    return ctx.store.size() - before


def harvest_loop(ctx: HarvestContext, specs: Sequence[SourceSpec], *, max_cycles: Optional[int] = None) -> int:
    """
    Repeat cycles until the stop event is set (or `max_cycles` cycles ran).

    Checkpoint and statistics intervals are only evaluated between cycles.
    Returns the number of cycles that ran to completion.
    """
    cfg = ctx.config
    limit = cfg.max_cycles if max_cycles is None else max(0, int(max_cycles))
    last_save = time.monotonic()
    last_stats = time.monotonic()
    cycle = 0

    while not ctx.cancelled():
        cycle += 1
        ctx.stats.last_cycle_proxies.set(0)
        logger.info("starting cycle #%d (%d sources, batch=%d)", cycle, len(specs), cfg.batch_size)

        t0 = time.perf_counter()
        delta = run_cycle(ctx, specs)
        if ctx.cancelled():
            logger.info("cycle #%d interrupted after %.1fs (+%d proxies)", cycle, time.perf_counter() - t0, delta)
            break
        ctx.stats.completed_cycles.inc()

        now = time.monotonic()
        if now - last_save >= cfg.save_interval_seconds:
            ctx.checkpoint.write(ctx.store, ctx.stats)
            last_save = now
        if cfg.status_interval_seconds > 0 and now - last_stats >= cfg.status_interval_seconds:
            display_statistics(ctx.stats)
            last_stats = now

        if delta > 0:
            logger.info("cycle #%d: +%d new proxies in %.1fs", cycle, delta, time.perf_counter() - t0)
        else:
            logger.info("cycle #%d: no new proxies found (%.1fs)", cycle, time.perf_counter() - t0)

        if limit and cycle >= limit:
            break
        logger.info("pausing for %.0f seconds before next cycle...", cfg.cycle_pause_seconds)
        ctx.stop.wait(cfg.cycle_pause_seconds)

    return ctx.stats.completed_cycles.get()


def drain_and_checkpoint(ctx: HarvestContext, timeout: Optional[float] = None) -> bool:
    """
    Set the stop event, wait (bounded) for in-flight workers, then write a final checkpoint.
    Returns True when all workers drained before the deadline.
    """
    ctx.stop.set()
    wait_s = ctx.config.drain_timeout_seconds if timeout is None else max(0.0, float(timeout))
    deadline = time.monotonic() + wait_s
    drained = True
    last_log = 0.0
    while ctx.stats.active_workers.get() > 0:
        now = time.monotonic()
        if now >= deadline:
            drained = False
            logger.warning("shutdown: %d workers still running after %.0fs, continuing", ctx.stats.active_workers.get(), wait_s)
            break
        if now - last_log >= 1.0:
            logger.info("shutdown: waiting for %d workers to finish...", ctx.stats.active_workers.get())
            last_log = now
        time.sleep(0.1)
    ctx.checkpoint.write(ctx.store, ctx.stats)
    return drained
