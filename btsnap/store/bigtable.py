"""
Google Cloud Bigtable table store implementation.

This module provides the production TableStore backend. It works with:
- The Bigtable emulator (BIGTABLE_EMULATOR_HOST set)
- Real Bigtable instances (requires the explicit GCP opt-in)

Data operations (row streaming, bulk writes) go through the async data
client; table listing and row dropping go through the async table-admin
client.

Invariants:
    - Bulk writes are attempted once; the client's retry loop is disabled
      so per-item failures reach the engine unchanged
    - Timestamps are converted between Bigtable microseconds and the
      engine's nanoseconds at this boundary only
    - Client exceptions are wrapped in btsnap.errors types

How to change safely:
    - Test against the emulator before pointing at a real instance
    - Keep read_rows() an async generator so aclose() stops the stream
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import grpc
from google.api_core import exceptions as core_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud.bigtable.data import (
    BigtableDataClientAsync,
    ReadRowsQuery,
    RowMutationEntry,
    SetCell,
)
from google.cloud.bigtable.data.exceptions import (
    FailedMutationEntryError,
    MutationsExceptionGroup,
)
from google.cloud.bigtable_admin_v2 import BigtableTableAdminAsyncClient
from google.cloud.bigtable_admin_v2.services.bigtable_table_admin.transports import (
    BigtableTableAdminGrpcAsyncIOTransport,
)

from ..config import BigtableConfig
from ..errors import (
    BulkWriteError,
    StoreConnectionError,
    StreamError,
    TableClearError,
    TableListError,
)
from .base import MutationBatch, MutationFailed, MutationOk, MutationResult, ReadItem, RowData

logger = logging.getLogger(__name__)

NANOS_PER_MICRO = 1000


class BigtableTableStore:
    """Bigtable implementation of TableStore protocol.

    Attributes:
        config: Bigtable configuration

    Example:
        >>> config = BigtableConfig(project="local", instance="local",
        ...                         emulator_host="localhost:8086")
        >>> store = BigtableTableStore(config)
        >>> await store.connect()
        >>> tables = await store.list_tables()
    """

    def __init__(self, config: BigtableConfig) -> None:
        """Initialize Bigtable table store.

        Args:
            config: BigtableConfig with project/instance settings
        """
        self.config = config
        self._data_client: BigtableDataClientAsync | None = None
        self._admin_client: BigtableTableAdminAsyncClient | None = None

    @property
    def is_connected(self) -> bool:
        """Whether both clients are open."""
        return self._data_client is not None and self._admin_client is not None

    async def connect(self) -> None:
        """Create the data and admin clients.

        Raises:
            StoreConnectionError: If client creation fails
        """
        if self.is_connected:
            return

        try:
            if self.config.emulator_host:
                # the data client picks up BIGTABLE_EMULATOR_HOST itself; the
                # admin client needs an explicit plaintext channel
                self._data_client = BigtableDataClientAsync(
                    project=self.config.project,
                    credentials=AnonymousCredentials(),
                )
                transport = BigtableTableAdminGrpcAsyncIOTransport(
                    channel=grpc.aio.insecure_channel(self.config.emulator_host),
                )
                self._admin_client = BigtableTableAdminAsyncClient(transport=transport)
            else:
                self._data_client = BigtableDataClientAsync(project=self.config.project)
                self._admin_client = BigtableTableAdminAsyncClient()
        except Exception as e:
            self._data_client = None
            self._admin_client = None
            raise StoreConnectionError(f"failed to connect to bigtable instance: {e}") from e

        logger.info(
            "Connected to Bigtable",
            extra={
                "project": self.config.project,
                "instance": self.config.instance,
                "emulator_host": self.config.emulator_host,
            },
        )

    async def close(self) -> None:
        """Close both clients."""
        if self._data_client:
            try:
                await self._data_client.close()
            except Exception as e:
                logger.warning(f"Error closing data client: {e}")
            self._data_client = None

        if self._admin_client:
            try:
                await self._admin_client.transport.close()
            except Exception as e:
                logger.warning(f"Error closing admin client: {e}")
            self._admin_client = None

        logger.info("Bigtable clients closed")

    def _require_clients(self) -> tuple[BigtableDataClientAsync, BigtableTableAdminAsyncClient]:
        if self._data_client is None or self._admin_client is None:
            raise StoreConnectionError("Not connected")
        return self._data_client, self._admin_client

    def _table_path(self, table_name: str) -> str:
        return f"{self.config.instance_path}/tables/{table_name}"

    async def list_tables(self) -> list[str]:
        """List unqualified table names in the instance."""
        _, admin = self._require_clients()
        try:
            pager = await admin.list_tables(parent=self.config.instance_path)
            return [table.name.rsplit("/", 1)[-1] async for table in pager]
        except core_exceptions.GoogleAPIError as e:
            raise TableListError(f"failed to list BT tables: {e}") from e

    async def drop_all_rows(self, table_name: str) -> None:
        """Drop every row of a table."""
        _, admin = self._require_clients()
        try:
            await admin.drop_row_range(
                request={
                    "name": self._table_path(table_name),
                    "delete_all_data_from_table": True,
                }
            )
        except core_exceptions.GoogleAPIError as e:
            raise TableClearError(f"failed to delete table: {e}", table=table_name) from e

    async def read_rows(self, table_name: str) -> AsyncIterator[RowData]:
        """Stream every row of a table over the infinite key range."""
        data, _ = self._require_clients()
        table = data.get_table(
            self.config.instance,
            table_name,
            app_profile_id=self.config.app_profile_id,
        )
        try:
            stream = await table.read_rows_stream(ReadRowsQuery())
            async for row in stream:
                yield self._to_row_data(table_name, row)
        except core_exceptions.GoogleAPIError as e:
            raise StreamError(f"failure while iterating rows: {e}", table=table_name) from e
        finally:
            await table.close()

    def _to_row_data(self, table_name: str, row) -> RowData:
        result = RowData(row_key=row.row_key)
        for cell in row:
            try:
                column = cell.qualifier.decode("utf-8")
            except UnicodeDecodeError as e:
                raise StreamError(
                    f"column qualifier {cell.qualifier!r} of row {row.row_key!r} is not UTF-8",
                    table=table_name,
                ) from e
            result.families.setdefault(cell.family, []).append(
                ReadItem(
                    row_key=row.row_key,
                    column=column,
                    value=cell.value,
                    timestamp_ns=cell.timestamp_micros * NANOS_PER_MICRO,
                )
            )
        return result

    async def apply_batch(self, table_name: str, batch: MutationBatch) -> list[MutationResult]:
        """Write a batch with a single bulk_mutate_rows call."""
        data, _ = self._require_clients()
        entries = []
        for cell in batch.cells:
            try:
                mutation = SetCell(
                    family=cell.family,
                    qualifier=cell.column.encode("utf-8"),
                    new_value=cell.value,
                    timestamp_micros=cell.timestamp_ns // NANOS_PER_MICRO,
                )
            except ValueError as e:
                # SetCell rejects timestamps before the epoch
                raise BulkWriteError(
                    f"failed to write to bigtable: row {cell.row_key!r}: {e}", table=table_name
                ) from e
            entries.append(RowMutationEntry(cell.row_key, [mutation]))

        results: list[MutationResult] = [MutationOk(index=i) for i in range(len(entries))]
        table = data.get_table(
            self.config.instance,
            table_name,
            app_profile_id=self.config.app_profile_id,
        )
        try:
            await table.bulk_mutate_rows(entries, retryable_errors=())
        except MutationsExceptionGroup as group:
            for exc in group.exceptions:
                if not isinstance(exc, FailedMutationEntryError) or exc.index is None:
                    raise BulkWriteError(
                        f"failed to write to bigtable: {exc}", table=table_name
                    ) from group
                cause = exc.__cause__ or exc
                results[exc.index] = MutationFailed(
                    index=exc.index,
                    row_key=batch.cells[exc.index].row_key,
                    reason=str(cause),
                )
        except core_exceptions.GoogleAPIError as e:
            raise BulkWriteError(f"failed to write to bigtable: {e}", table=table_name) from e
        finally:
            await table.close()

        return results
