"""Stock catalogue stored in PostgreSQL."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping

from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from .db import get_conn
from .errors import NotFound
from .models import STOCK_FIELDS, Stock

LOGGER = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS stocks (
    ticker VARCHAR(20) PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',

    morningstar_id VARCHAR(64),
    morningstar_last_fetch TIMESTAMPTZ,
    star_rating SMALLINT CHECK (star_rating BETWEEN 0 AND 5),
    size VARCHAR(8),
    style VARCHAR(8),
    currency CHAR(3),
    last_close DOUBLE PRECISION,
    morningstar_fair_value DOUBLE PRECISION,
    dividend_yield_percent DOUBLE PRECISION,
    price_earning_ratio DOUBLE PRECISION,
    low_52w DOUBLE PRECISION,
    high_52w DOUBLE PRECISION,

    marketscreener_id VARCHAR(128),
    marketscreener_last_fetch TIMESTAMPTZ,
    analyst_consensus DOUBLE PRECISION,
    analyst_count INTEGER,
    analyst_target_price DOUBLE PRECISION,

    msci_id VARCHAR(128),
    msci_last_fetch TIMESTAMPTZ,
    msci_esg_rating VARCHAR(3),
    msci_temperature DOUBLE PRECISION,

    ric VARCHAR(32),
    lseg_last_fetch TIMESTAMPTZ,
    lseg_esg_score DOUBLE PRECISION,
    lseg_emissions DOUBLE PRECISION,

    sp_id VARCHAR(32),
    sp_last_fetch TIMESTAMPTZ,
    sp_esg_score DOUBLE PRECISION
);
"""


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class CatalogueStore:
    """Read and patch stocks; one connection per call."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn

    def ensure_schema(self) -> None:
        with get_conn(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        LOGGER.info("Ensured stocks table exists")

    def read_one(self, ticker: str) -> Stock:
        with get_conn(self.dsn) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("SELECT * FROM stocks WHERE ticker = %s", (ticker,))
                row = cur.fetchone()
        if row is None:
            raise NotFound(f"Stock {ticker} not found.")
        return Stock.model_validate(dict(row))

    def read_all(self) -> List[Stock]:
        with get_conn(self.dsn) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("SELECT * FROM stocks ORDER BY ticker")
                rows = cur.fetchall()
        return [Stock.model_validate(dict(row)) for row in rows]

    def patch(self, ticker: str, fields: Mapping[str, Any]) -> None:
        """Update only the supplied columns of one stock.

        Raises
        ------
        ValueError
            If a field is not a stock attribute.
        NotFound
            If the ticker is unknown.
        """
        unknown = set(fields) - (STOCK_FIELDS - {"ticker"})
        if unknown:
            raise ValueError(f"Unknown stock attributes: {', '.join(sorted(unknown))}")
        if not fields:
            return

        values: Dict[str, Any] = {name: _to_db(value) for name, value in fields.items()}
        query = sql.SQL("UPDATE stocks SET {assignments} WHERE ticker = %s").format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(name)) for name in values
            )
        )
        with get_conn(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (*values.values(), ticker))
                updated = cur.rowcount
        if updated == 0:
            raise NotFound(f"Stock {ticker} not found.")
        LOGGER.debug("Patched %s: %s", ticker, ", ".join(values))
