"""FastAPI trigger surface for provider fetches."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Response

from ..errors import FatalFetchError, NotFound, SessionUnavailable
from ..models import Stock
from ..notify import MessageType
from ..providers import Provider, get_provider
from ..runner import FetchOptions
from ..service import FetchService

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Stock Fetch API")


@lru_cache(maxsize=1)
def get_service() -> FetchService:
    return FetchService.from_settings()


def _run_detached(service: FetchService, provider: Provider, stocks: List[Stock], options: FetchOptions) -> None:
    try:
        result = service.run(provider, stocks, options)
    except Exception as exc:
        LOGGER.error("Detached %s fetch failed: %s", provider.name, exc, exc_info=True)
        service.notifier.send(str(exc), MessageType.FETCH_ERROR)
        return
    LOGGER.info("Detached %s", result.summary())


@app.get("/health", response_class=Response)
def health() -> Response:
    return Response(content="ok", media_type="text/plain")


@app.post("/api/fetch/{provider}", response_model=List[Stock])
def fetch(
    provider: str,
    background_tasks: BackgroundTasks,
    ticker: Optional[str] = None,
    detach: bool = False,
    no_skip: Optional[bool] = Query(None, alias="noSkip"),
    clear: bool = False,
    concurrency: Optional[str] = None,
    service: FetchService = Depends(get_service),
):
    try:
        data_provider = get_provider(provider)
        stocks = service.select_stocks(data_provider, ticker)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    if not stocks:
        return Response(status_code=204)

    options = FetchOptions(ticker=ticker, no_skip=no_skip, clear=clear, concurrency=concurrency or 1)
    if detach:
        background_tasks.add_task(_run_detached, service, data_provider, stocks, options)
        return Response(status_code=202)

    try:
        result = service.run(data_provider, stocks, options)
    except (FatalFetchError, SessionUnavailable) as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    if not result.successful:
        return Response(status_code=204)
    return result.successful


@app.get("/api/resources/{resource_id}", response_class=Response)
def resource(resource_id: str, service: FetchService = Depends(get_service)) -> Response:
    if service.resources is None:
        raise HTTPException(status_code=404, detail=f"Resource {resource_id} not found.")
    try:
        found = service.resources.read(resource_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return Response(content=found.content, media_type=found.content_type)
