"""
Per-cell integrity checksum.

A cell's checksum is the 32-bit FNV-1a hash of its fields fed in a fixed
order: row key, column family, column, value, then the timestamp
rendered as a fixed-precision RFC 3339 string in UTC
(``YYYY-MM-DDTHH:MM:SS.nnnnnnnnnZ``).

The checksum detects corruption or divergence between a snapshot and the
store. It is not a security mechanism.

Invariants:
    - Identical cells always hash to the same value
    - Field order and timestamp format never change; both are part of
      the snapshot format
"""

from __future__ import annotations

from collections.abc import Iterable

from .store.base import Cell

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 0x01000193

NANOS_PER_SECOND = 1_000_000_000
SECONDS_PER_DAY = 86_400

# Days in a 400-year Gregorian cycle, and from 0000-03-01 to 1970-01-01
_DAYS_PER_ERA = 146_097
_EPOCH_SHIFT = 719_468


def fnv1a_32(chunks: Iterable[bytes]) -> int:
    """Hash the concatenation of ``chunks`` with 32-bit FNV-1a."""
    h = FNV32_OFFSET_BASIS
    for chunk in chunks:
        for byte in chunk:
            h ^= byte
            h = (h * FNV32_PRIME) & 0xFFFFFFFF
    return h


def format_timestamp(timestamp_ns: int) -> str:
    """Render a nanosecond epoch timestamp as a fixed-precision UTC string.

    Example:
        >>> format_timestamp(1_700_000_000_123_456_789)
        '2023-11-14T22:13:20.123456789Z'
    """
    seconds, nanos = divmod(timestamp_ns, NANOS_PER_SECOND)
    days, second_of_day = divmod(seconds, SECONDS_PER_DAY)
    year, month, day = civil_from_days(days)
    hour, rest = divmod(second_of_day, 3600)
    minute, second = divmod(rest, 60)
    sign = "-" if year < 0 else ""
    return (
        f"{sign}{abs(year):04d}-{month:02d}-{day:02d}"
        f"T{hour:02d}:{minute:02d}:{second:02d}.{nanos:09d}Z"
    )


def civil_from_days(days: int) -> tuple[int, int, int]:
    """Convert days since 1970-01-01 to a proleptic Gregorian (year, month, day).

    Works on plain integers, so any year is representable (year 0 is
    1 BC), unlike datetime which stops at 9999.
    """
    era, day_of_era = divmod(days + _EPOCH_SHIFT, _DAYS_PER_ERA)
    year_of_era = (
        day_of_era - day_of_era // 1460 + day_of_era // 36_524 - day_of_era // 146_096
    ) // 365
    day_of_year = day_of_era - (365 * year_of_era + year_of_era // 4 - year_of_era // 100)
    # months counted from March so the leap day falls at the end
    shifted_month = (5 * day_of_year + 2) // 153
    day = day_of_year - (153 * shifted_month + 2) // 5 + 1
    month = shifted_month + 3 if shifted_month < 10 else shifted_month - 9
    year = year_of_era + era * 400 + (1 if month <= 2 else 0)
    return year, month, day


def compute_checksum(
    row_key: bytes,
    family: str,
    column: str,
    value: bytes,
    timestamp_ns: int,
) -> int:
    """Compute the checksum of one cell.

    Args:
        row_key: Row key bytes
        family: Column family name
        column: Unqualified column name (no ``family:`` prefix)
        value: Raw cell value
        timestamp_ns: Cell timestamp in nanoseconds since the epoch

    Returns:
        Unsigned 32-bit checksum
    """
    return fnv1a_32(
        (
            row_key,
            family.encode("utf-8"),
            column.encode("utf-8"),
            value,
            format_timestamp(timestamp_ns).encode("utf-8"),
        )
    )


def checksum_cell(cell: Cell) -> int:
    return compute_checksum(
        cell.row_key, cell.family, cell.column, cell.value, cell.timestamp_ns
    )
