"""
btsnap - save and restore Bigtable instances to a local SQLite file.

The tool is mostly used against the Bigtable emulator: ``save`` captures
every table of an instance into a SQLite snapshot, ``restore`` replays
that snapshot back into the instance.

Architecture:
    ┌──────────────┐   save    ┌──────────────┐
    │   Bigtable   │──────────▶│    SQLite    │
    │  (instance)  │◀──────────│  (snapshot)  │
    └──────────────┘  restore  └──────────────┘
           ▲                          ▲
           │ TableStore               │ SnapshotStore
           └───────────┬──────────────┘
                       │
                ┌──────┴──────┐
                │ sync engine │  (save_all / restore / verify)
                └─────────────┘

Invariants:
    - Every snapshot row carries an FNV-1a checksum of its cell
    - Restore never writes a cell whose checksum does not match
    - Tables are processed one at a time in lexicographic order
    - Save and restore are full overwrites, never merges

How to change safely:
    - Never change the checksum field order or timestamp format, old
      snapshots would stop verifying
    - Keep the snapshot table layout stable (see snapshot/schema.py)

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
