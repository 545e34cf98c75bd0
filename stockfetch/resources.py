"""Short-lived binary resources, e.g. screenshots of failed fetches."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import psycopg2

from .db import get_conn
from .errors import NotFound

LOGGER = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS resources (
    id TEXT PRIMARY KEY,
    content BYTEA NOT NULL,
    content_type VARCHAR(100) NOT NULL,
    expires_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_resources_expires_at ON resources(expires_at);
"""


@dataclass
class Resource:
    id: str
    content: bytes
    content_type: str
    expires_at: datetime


class ResourceStore:
    """Resources in PostgreSQL with a per-row expiry."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn

    def ensure_schema(self) -> None:
        with get_conn(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        LOGGER.info("Ensured resources table exists")

    def save(self, resource_id: str, content: bytes, ttl: float, content_type: str = "image/png") -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        with get_conn(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO resources (id, content, content_type, expires_at)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (id) DO UPDATE
                    SET content = EXCLUDED.content,
                        content_type = EXCLUDED.content_type,
                        expires_at = EXCLUDED.expires_at
                    """,
                    (resource_id, psycopg2.Binary(content), content_type, expires_at),
                )

    def read(self, resource_id: str) -> Resource:
        with get_conn(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, content, content_type, expires_at FROM resources "
                    "WHERE id = %s AND expires_at > NOW()",
                    (resource_id,),
                )
                row = cur.fetchone()
        if row is None:
            raise NotFound(f"Resource {resource_id} not found.")
        return Resource(id=row[0], content=bytes(row[1]), content_type=row[2], expires_at=row[3])

    def purge_expired(self) -> int:
        with get_conn(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM resources WHERE expires_at <= NOW()")
                purged = cur.rowcount
        if purged:
            LOGGER.info("Purged %d expired resources", purged)
        return purged


def store_screenshot(
    resources: ResourceStore,
    png: Optional[bytes],
    provider: str,
    ticker: str,
    base_url: str,
    ttl: float,
) -> str:
    """Save a screenshot and return the line referencing it in alert text."""
    if not png:
        return "No screenshot is available."
    resource_id = f"error-{provider}-{ticker}-{uuid.uuid4().hex[:12]}.png"
    try:
        resources.save(resource_id, png, ttl)
    except Exception as exc:
        LOGGER.error("Unable to store screenshot %s: %s", resource_id, exc)
        return f"Unable to store screenshot: {exc}"
    hours = ttl / 3600
    return (
        f"For additional information, see {base_url.rstrip('/')}/api/resources/{resource_id} "
        f"(available for {hours:g} hours)."
    )
