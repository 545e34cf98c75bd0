"""LSEG (formerly Refinitiv) ESG scores.

The search endpoint answers with JSON, which the browser renders as the
page body.
"""
from __future__ import annotations

import json
from datetime import timedelta
from typing import Any, Dict

from ..browser import PageLoadStrategy, Session, SessionManager
from ..errors import FieldExtractionError, PageNotReady
from ..extract import Locator, parse_number, read_raw
from ..models import Stock
from .base import FieldSpec, Provider

BODY = Locator("body")


def _payload(raw: str) -> Dict[str, Any]:
    try:
        payload = json.loads(raw)
    except ValueError:
        raise FieldExtractionError("LSEG response is no valid JSON") from None
    if not isinstance(payload, dict):
        raise FieldExtractionError("LSEG response is no JSON object")
    return payload


def _score(raw: str, key: str, label: str) -> float:
    score = (_payload(raw).get("esgScore") or {}).get(key)
    if not isinstance(score, dict) or "score" not in score:
        raise FieldExtractionError(f"{label} not found in JSON response")
    return parse_number(str(score["score"]))


def parse_esg_score(raw: str, stock: Stock) -> float:
    return _score(raw, "TR.TRESG", "LSEG ESG Score")


def parse_emissions(raw: str, stock: Stock) -> float:
    return _score(raw, "TR.TRESGEmissions", "LSEG Emissions")


class LSEGProvider(Provider):
    name = "lseg"
    display_name = "LSEG"
    id_field = "ric"
    last_fetch_field = "lseg_last_fetch"
    staleness = timedelta(days=7)
    page_load_strategy = PageLoadStrategy.NORMAL
    ready_selector = "body"
    fields = (
        FieldSpec("lseg_esg_score", BODY, parse_esg_score),
        FieldSpec("lseg_emissions", BODY, parse_emissions),
    )

    def url_for(self, stock: Stock) -> str:
        return f"https://www.lseg.com/bin/esg/esgsearchresult?ricCode={self.provider_id(stock)}"

    def check_page(self, sessions: SessionManager, session: Session) -> None:
        try:
            payload = json.loads(read_raw(session, BODY))
        except ValueError:
            return
        if not payload:
            raise PageNotReady("No LSEG information available")
        status = payload.get("status") if isinstance(payload, dict) else None
        if isinstance(status, dict) and status.get("limitExceeded") is True:
            raise PageNotReady("LSEG request limit exceeded")
