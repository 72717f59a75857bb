import json
import os
import threading
import time

from mtproxxy.fetch import FetchError
from mtproxxy.orchestrator import drain_and_checkpoint, harvest_loop, run_batch, run_cycle
from mtproxxy.scrapers import SourceSpec, StaticUrlScraper, normalize_sources
from mtproxxy.status import AtomicCounter
from mtproxxy.store import RecordStore

PAGE_A = b"Server: 1.2.3.4 Port: 443 Secret: deadbeefdeadbeefdeadbeef"
PAGE_B = b'"server": "proxy.example.com", "port": 8080, "secret": "ee11223344556677889900aabbccddeeff"'

URL_A = "https://a.example/list.txt"
URL_B = "https://b.example/list.txt"
URL_DOWN = "https://down.example/list.txt"


def _specs(*urls):
    return normalize_sources(list(urls))


def test_cycle_merges_every_source(make_context):
    ctx = make_context({URL_A: PAGE_A, URL_B: PAGE_B})
    delta = run_cycle(ctx, _specs(URL_A, URL_B, URL_DOWN))

    assert delta == 2
    assert ctx.store.size() == 2
    assert ctx.stats.total_requests.get() == 3
    assert ctx.stats.processed_urls.get() == 2
    assert ctx.stats.network_errors.get() == 1
    assert ctx.stats.unique_proxies.get() == 2
    assert ctx.stats.total_proxies.get() == 2
    assert ctx.stats.active_workers.get() == 0


def test_second_cycle_over_same_content_adds_nothing(make_context):
    ctx = make_context({URL_A: PAGE_A, URL_B: PAGE_B})
    specs = _specs(URL_A, URL_B)
    assert run_cycle(ctx, specs) == 2
    assert run_cycle(ctx, specs) == 0
    assert ctx.store.size() == 2


def test_same_proxy_from_two_sources_is_stored_once(make_context):
    ctx = make_context({URL_A: PAGE_A, URL_B: PAGE_A})
    run_cycle(ctx, _specs(URL_A, URL_B))
    assert ctx.store.size() == 1


def test_batches_respect_batch_size(make_context):
    urls = [f"https://s{i}.example/list.txt" for i in range(5)]
    ctx = make_context({u: PAGE_A for u in urls}, concurrent_downloads=2)
    assert ctx.config.batch_size == 2
    run_cycle(ctx, _specs(*urls))
    assert sorted(ctx.fetcher.calls) == sorted(urls)


def test_worker_failure_does_not_stop_the_batch(make_context):
    ctx = make_context({URL_A: RuntimeError("boom"), URL_B: PAGE_B})
    started = run_batch(ctx, [StaticUrlScraper(s) for s in _specs(URL_A, URL_B)])
    assert started == 2
    assert ctx.store.size() == 1
    assert ctx.stats.active_workers.get() == 0


def test_fetch_error_counts_as_network_error(make_context):
    ctx = make_context({URL_A: FetchError(URL_A, "timeout")})
    assert StaticUrlScraper(SourceSpec(URL_A)).scrape(ctx) == 0
    assert ctx.stats.network_errors.get() == 1
    assert ctx.stats.processed_urls.get() == 0


def test_no_fetch_after_stop(make_context):
    ctx = make_context({URL_A: PAGE_A})
    ctx.stop.set()
    assert run_cycle(ctx, _specs(URL_A)) == 0
    assert ctx.fetcher.calls == []


def test_harvest_loop_honours_max_cycles(make_context):
    ctx = make_context({URL_A: PAGE_A, URL_B: PAGE_B}, save_interval_seconds=0.0)
    completed = harvest_loop(ctx, _specs(URL_A, URL_B), max_cycles=2)

    assert completed == 2
    assert ctx.stats.completed_cycles.get() == 2
    assert len(ctx.fetcher.calls) == 4
    with open(ctx.config.json_path, encoding="utf-8") as f:
        assert json.load(f)["total_proxies"] == 2


def test_last_cycle_counter_resets_each_cycle(make_context):
    ctx = make_context({URL_A: PAGE_A})
    harvest_loop(ctx, _specs(URL_A), max_cycles=2)
    assert ctx.stats.last_cycle_proxies.get() == 0
    assert ctx.stats.successful_proxies.get() == 1


def test_stop_from_another_thread_ends_the_loop(make_context):
    ctx = make_context({URL_A: PAGE_A}, cycle_pause_seconds=30.0)
    t = threading.Thread(target=harvest_loop, args=(ctx, _specs(URL_A)))
    t.start()
    deadline = time.monotonic() + 5
    while ctx.stats.completed_cycles.get() < 1 and time.monotonic() < deadline:
        time.sleep(0.01)
    ctx.stop.set()
    t.join(timeout=5)
    assert not t.is_alive()
    assert ctx.stats.completed_cycles.get() >= 1


def test_drain_writes_final_checkpoint(make_context):
    ctx = make_context({URL_A: PAGE_A})
    run_cycle(ctx, _specs(URL_A))
    assert drain_and_checkpoint(ctx)
    assert ctx.stop.is_set()
    with open(ctx.config.text_path, encoding="utf-8") as f:
        assert "tg://proxy?server=1.2.3.4&port=443&secret=deadbeefdeadbeefdeadbeef" in f.read()


def test_drain_gives_up_after_timeout(make_context):
    ctx = make_context()
    ctx.stats.active_workers.inc()
    assert drain_and_checkpoint(ctx, timeout=0.2) is False
    assert os.path.isfile(ctx.config.json_path)


class HoldFirstMergeStore(RecordStore):
    """Lets the first merging worker fall behind: it returns only after `release` is set."""

    def __init__(self):
        super().__init__()
        self.first_merged = threading.Event()
        self.release = threading.Event()

    def merge(self, batch):
        result = super().merge(batch)
        if not self.first_merged.is_set():
            self.first_merged.set()
            self.release.wait(5)
        return result


def test_total_proxies_never_goes_backwards(make_context):
    ctx = make_context({URL_A: PAGE_A, URL_B: PAGE_B})
    ctx.store = HoldFirstMergeStore()

    slow = threading.Thread(target=StaticUrlScraper(SourceSpec(URL_A)).scrape, args=(ctx,))
    slow.start()
    assert ctx.store.first_merged.wait(5)
    # The second worker merges and publishes while the first still holds its stale size
    StaticUrlScraper(SourceSpec(URL_B)).scrape(ctx)
    assert ctx.stats.total_proxies.get() == 2
    ctx.store.release.set()
    slow.join(timeout=5)

    assert ctx.store.size() == 2
    assert ctx.stats.total_proxies.get() == 2


def test_set_max_only_raises():
    counter = AtomicCounter(5)
    assert counter.set_max(3) == 5
    assert counter.set_max(9) == 9
    assert counter.get() == 9
