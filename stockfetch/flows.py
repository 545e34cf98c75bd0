"""Prefect flow wiring for the scheduled fetch cycle."""
from __future__ import annotations

from typing import Dict, Optional

from prefect import flow, get_run_logger, task

from .config import Settings
from .runner import FetchOptions, RunResult
from .scheduler import DEFAULT_CYCLE, CycleEntry, RunScheduler
from .service import FetchService


@task
def purge_resources_task() -> int:
    """Delete screenshots whose lifetime has passed."""
    logger = get_run_logger()
    purged = FetchService.from_settings().purge_resources()
    logger.info("purge_resources_task purged=%s", purged)
    return purged


@task
def fetch_provider_task(provider: str, concurrency: int) -> str:
    """Run one provider over the whole catalogue."""
    logger = get_run_logger()
    result: RunResult = FetchService.from_settings().fetch(provider, FetchOptions(concurrency=concurrency))
    logger.info("fetch_provider_task %s", result.summary())
    return result.summary()


@flow(name="stockfetch-cycle")
def fetch_cycle() -> Dict[str, str]:
    """Fetch all providers in dependency order."""
    logger = get_run_logger()
    service = FetchService.from_settings()

    def run_entry(entry: CycleEntry) -> str:
        return fetch_provider_task(entry.provider, service.concurrency_for(entry))

    scheduler = RunScheduler(DEFAULT_CYCLE, run_entry, service.notifier, before_cycle=purge_resources_task)
    results = scheduler.run_cycle()
    summary = {name: str(value) for name, value in results.items()}
    logger.info("fetch_cycle %s", summary)
    return summary


def serve_schedule(cron: Optional[str] = None) -> None:
    """Serve ``fetch_cycle`` on a cron schedule until interrupted."""
    cron = cron or Settings.from_env().auto_fetch_schedule
    fetch_cycle.serve(name="stockfetch-cycle", cron=cron)
