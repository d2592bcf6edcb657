"""
Synchronization engine for btsnap.

This module handles:
- save: stream every remote table into the snapshot file
- restore: clear the remote instance and replay the snapshot into it
- verify: audit snapshot checksums without touching the remote store

Invariants:
    - Tables are processed sequentially in lexicographic order
    - The first error aborts the whole run
    - Restore never writes a cell it cannot verify
"""

from .engine import RestoreResult, SaveResult, restore, save_all
from .restore import restore_table
from .save import save_table
from .verify import VerifyResult, verify_snapshot

__all__ = [
    "save_all",
    "save_table",
    "restore",
    "restore_table",
    "verify_snapshot",
    "SaveResult",
    "RestoreResult",
    "VerifyResult",
]
