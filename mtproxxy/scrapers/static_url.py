from __future__ import annotations

import logging
import random
import time

from ..context import HarvestContext
from ..fetch import FetchError
from ..status import humanize_bytes
from .extractors.base import ExtractContext
from .sources import SourceSpec

logger = logging.getLogger("mtproXXy.scrapers.static_url")


class StaticUrlScraper:
    """Fetch one catalog URL, extract proxies from the body and merge them into the store."""
    name = "static_url"

    def __init__(self, spec: SourceSpec) -> None:
        self.spec = spec
        self.task = spec.to_task()
        self.extractor = spec.create_extractor()

    def _throttle(self, ctx: HarvestContext) -> None:
        delay_ms = int(ctx.config.request_delay_ms)
        if delay_ms > 0:
            ctx.stop.wait((random.randrange(delay_ms) + 50) / 1000.0)

    def scrape(self, ctx: HarvestContext) -> int:
        """Return the number of new unique proxies this URL contributed."""
        if ctx.cancelled():
            return 0
        self._throttle(ctx)
        if ctx.cancelled():
            return 0

        url = self.task.url
        stats = ctx.stats
        stats.total_requests.inc()
        logger.info("fetching: %s", url)
        try:
            res = ctx.fetcher.fetch(url)
        except FetchError as e:
            stats.network_errors.inc()
            logger.warning("fetch failed: %s (%s)", url, e.reason)
            return 0
        stats.total_bytes.add(len(res.body))

        t0 = time.perf_counter()
        result = self.extractor.extract(
            res.body,
            context=ExtractContext(source_url=url, stop=ctx.stop, batch_cap=ctx.config.fetch_batch_cap),
        )
        if result.rejected:
            stats.rejected_candidates.add(result.rejected)

        added = 0
        if result.proxies:
            merged = ctx.store.merge(result.proxies)
            added = merged.added
            if added:
                stats.unique_proxies.add(added)
                stats.successful_proxies.add(added)
                stats.last_cycle_proxies.add(added)
            # Workers publish out of order; the store only grows
            stats.total_proxies.set_max(merged.size)
            logger.info(
                "added %d new proxies from %s (found=%d dupes=%d dropped=%d) | total: %d",
                added, url, len(result.proxies), merged.duplicates, merged.dropped, merged.size,
            )

        stats.processed_urls.inc()
        logger.info(
            "success: %s (%s, fetch %.2fs, parse %.2fs)",
            url, humanize_bytes(len(res.body)), res.elapsed, time.perf_counter() - t0,
        )
        return added
