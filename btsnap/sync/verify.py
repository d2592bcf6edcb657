"""
Read-only integrity audit of a snapshot file.

Recomputes the checksum of every row of every snapshot table without
touching the remote store, so a snapshot can be checked before it is
restored.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..snapshot.store import SnapshotStore
from .restore import verify_row

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Result of a verify run.

    Attributes:
        tables: Rows verified per table
        duration_ms: Total duration
    """

    tables: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def total_rows(self) -> int:
        return sum(self.tables.values())


def verify_snapshot(snapshot_store: SnapshotStore) -> VerifyResult:
    """Verify every row of every snapshot table.

    Raises:
        ChecksumMismatchError: On the first corrupted row
        StreamError: If reading the snapshot fails
    """
    start_time = time.time()
    result = VerifyResult()

    for table in snapshot_store.list_user_tables():
        count = 0
        for row in snapshot_store.stream_rows(table):
            verify_row(table, row)
            count += 1
        result.tables[table] = count
        logger.info(f"verified {count} rows for {table}", extra={"table": table, "rows": count})

    result.duration_ms = int((time.time() - start_time) * 1000)
    return result
