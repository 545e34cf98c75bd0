import threading

from stockfetch.models import Stock
from stockfetch.workspace import FetchWorkspace


def _stocks(count):
    return [Stock(ticker=f"S{i}") for i in range(count)]


def test_dequeue_is_fifo_and_returns_none_when_empty():
    workspace = FetchWorkspace(_stocks(3))

    assert [workspace.dequeue_next().ticker for _ in range(3)] == ["S0", "S1", "S2"]
    assert workspace.dequeue_next() is None
    assert workspace.remaining_count() == 0


def test_requeue_front_puts_stock_back_at_head():
    workspace = FetchWorkspace(_stocks(3))
    first = workspace.dequeue_next()

    workspace.requeue_front(first)

    assert [stock.ticker for stock in workspace.queued] == ["S0", "S1", "S2"]


def test_marking_moves_stock_between_buckets():
    workspace = FetchWorkspace(_stocks(3))
    workspace.mark_successful(workspace.dequeue_next())
    workspace.mark_failed(workspace.dequeue_next())
    workspace.mark_skipped(workspace.dequeue_next())

    assert workspace.stats() == {"queued": 0, "successful": 1, "failed": 1, "skipped": 1}
    assert [stock.ticker for stock in workspace.failed] == ["S1"]


def test_marking_replaces_stale_copy_of_the_same_stock():
    workspace = FetchWorkspace(_stocks(1))
    stock = workspace.dequeue_next()
    workspace.mark_failed(stock)

    workspace.mark_successful(stock.model_copy(update={"name": "renamed"}))

    assert workspace.failed == []
    assert workspace.successful[0].name == "renamed"


def test_drain_reports_only_to_first_caller():
    workspace = FetchWorkspace(_stocks(4))
    workspace.dequeue_next()

    drained = workspace.drain_remaining_to_skipped()

    assert [stock.ticker for stock in drained] == ["S1", "S2", "S3"]
    assert workspace.drain_remaining_to_skipped() == []
    assert len(workspace.skipped) == 3


def test_concurrent_workers_process_every_stock_once():
    workspace = FetchWorkspace(_stocks(200))

    def worker():
        while True:
            stock = workspace.dequeue_next()
            if stock is None:
                return
            if int(stock.ticker[1:]) % 2:
                workspace.mark_failed(stock)
            else:
                workspace.mark_successful(stock)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    tickers = [stock.ticker for stock in workspace.successful + workspace.failed]
    assert sorted(tickers) == sorted(f"S{i}" for i in range(200))
    assert workspace.stats()["queued"] == 0
