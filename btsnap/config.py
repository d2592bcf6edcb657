"""
Configuration management for btsnap.

Settings come from environment variables; CLI flags override them.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for the local emulator
    - Talking to a real GCP instance requires an explicit opt-in
    - Credentials are never read or logged here; the Bigtable client
      resolves them through the usual Google credential chain

How to change safely:
    - Add new settings with defaults that keep current behaviour
    - Keep flag names in main.py in sync with the env variables below
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
MAX_BATCH_SIZE = 100_000


@dataclass(frozen=True)
class BigtableConfig:
    """Bigtable connection configuration.

    Attributes:
        project: GCP project to connect to
        instance: Bigtable instance to connect to
        emulator_host: host:port of the Bigtable emulator, if any
        app_profile_id: Optional app profile for data operations
        allow_gcp: Safeguard; must be true to talk to a real instance
    """

    project: str = "local"
    instance: str = "local"
    emulator_host: str | None = None
    app_profile_id: str | None = None
    allow_gcp: bool = False

    @property
    def instance_path(self) -> str:
        return f"projects/{self.project}/instances/{self.instance}"

    @classmethod
    def from_env(cls) -> BigtableConfig:
        """Load configuration from environment variables."""
        return cls(
            project=os.getenv("BTSNAP_PROJECT", "local"),
            instance=os.getenv("BTSNAP_INSTANCE", "local"),
            emulator_host=os.getenv("BIGTABLE_EMULATOR_HOST") or None,
            app_profile_id=os.getenv("BTSNAP_APP_PROFILE") or None,
            allow_gcp=os.getenv("BTSNAP_GCP", "false").lower() == "true",
        )


@dataclass(frozen=True)
class SnapshotConfig:
    """Local snapshot file configuration.

    Attributes:
        db_path: SQLite file to save to or restore from; defaults to
            ``<instance>.db`` when empty
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    db_path: str = ""
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> SnapshotConfig:
        """Load configuration from environment variables."""
        return cls(
            db_path=os.getenv("BTSNAP_DB", ""),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class SyncConfig:
    """Sync engine configuration.

    Attributes:
        batch_size: Maximum cells per bulk write during restore
    """

    batch_size: int = DEFAULT_BATCH_SIZE

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Load configuration from environment variables."""
        return cls(
            batch_size=int(os.getenv("BTSNAP_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ToolConfig:
    """Complete tool configuration.

    Attributes:
        bigtable: Bigtable connection configuration
        snapshot: Snapshot file configuration
        sync: Sync engine configuration
        observability: Logging configuration
    """

    bigtable: BigtableConfig = field(default_factory=BigtableConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ToolConfig:
        """Load complete configuration from environment variables.

        Returns:
            ToolConfig with all sections populated from environment.
        """
        return cls(
            bigtable=BigtableConfig.from_env(),
            snapshot=SnapshotConfig.from_env(),
            sync=SyncConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

    @property
    def db_path(self) -> str:
        """Snapshot file path, falling back to ``<instance>.db``."""
        return self.snapshot.db_path or f"{self.bigtable.instance}.db"

    def with_overrides(
        self,
        db_path: str | None = None,
        project: str | None = None,
        instance: str | None = None,
        allow_gcp: bool | None = None,
    ) -> ToolConfig:
        """Return a copy with CLI flag values applied over the environment."""
        bigtable = self.bigtable
        if project is not None:
            bigtable = replace(bigtable, project=project)
        if instance is not None:
            bigtable = replace(bigtable, instance=instance)
        if allow_gcp:
            bigtable = replace(bigtable, allow_gcp=True)

        snapshot = self.snapshot
        if db_path is not None:
            snapshot = replace(snapshot, db_path=db_path)

        return replace(self, bigtable=bigtable, snapshot=snapshot)

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.bigtable.emulator_host and not self.bigtable.allow_gcp:
            raise ValueError("BIGTABLE_EMULATOR_HOST must be set OR -gcp=true must be set")
        if not self.bigtable.project:
            raise ValueError("project must not be empty")
        if not self.bigtable.instance:
            raise ValueError("instance must not be empty")
        if not 1 <= self.sync.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(
                f"BTSNAP_BATCH_SIZE must be between 1 and {MAX_BATCH_SIZE}, "
                f"got {self.sync.batch_size}"
            )
        if self.observability.log_format not in ("text", "json"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: text, json"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Tool configuration loaded",
            extra={
                "project": self.bigtable.project,
                "instance": self.bigtable.instance,
                "emulator_host": self.bigtable.emulator_host,
                "gcp": self.bigtable.allow_gcp,
                "db_path": self.db_path,
                "batch_size": self.sync.batch_size,
            },
        )
