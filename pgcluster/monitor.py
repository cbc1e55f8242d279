#!/usr/bin/env python3
"""
Replication state of a running primary, read from pg_stat_replication.
"""

from dataclasses import dataclass
from typing import List, Optional

import psycopg2


REPLICATION_QUERY = """
    SELECT application_name, state, sync_state
    FROM pg_stat_replication
    ORDER BY application_name
"""


@dataclass
class SenderState:
    """One WAL sender as seen by the primary."""
    application_name: str
    state: str
    sync_state: str


def fetch_replication_state(
    host: str,
    port: int,
    dbname: str = "postgres",
    user: Optional[str] = None,
    connect_timeout: int = 5,
) -> List[SenderState]:
    """
    Query the WAL senders of the primary at host:port.

    Raises:
        psycopg2.Error: the primary could not be queried
    """
    conn = psycopg2.connect(
        host=host,
        port=port,
        dbname=dbname,
        user=user,
        connect_timeout=connect_timeout,
    )
    try:
        with conn.cursor() as cur:
            cur.execute(REPLICATION_QUERY)
            rows = cur.fetchall()
    finally:
        conn.close()
    return [SenderState(*row) for row in rows]
