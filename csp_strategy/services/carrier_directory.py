"""
Carrier Directory Service

Resolves carrier codes (SCACs) found in shipment exports to canonical display
names. A directory is an immutable value built once per invocation from the
carriers table; nothing is cached at module level.

Resolution never fails: an unknown code passes through unchanged so that the
aggregates still group by the raw label.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional
import logging

from csp_strategy.core.database import get_db_pool
from csp_strategy.models import CarrierDirectoryEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarrierDirectory:
    """
    Read-only mapping of upper-cased carrier code → canonical name.

    Attributes:
        names_by_code: Mapping keyed by upper-cased, trimmed code.
    """
    names_by_code: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def resolve(self, raw: Optional[str]) -> str:
        """
        Return the canonical name for a carrier code, or the raw label itself.

        Example:
            >>> directory = build_carrier_directory([{'code': 'abcd', 'name': 'Acme Trucking'}])
            >>> directory.resolve('ABCD')
            'Acme Trucking'
            >>> directory.resolve('Some Other Carrier')
            'Some Other Carrier'
        """
        label = (raw or '').strip()
        if not label:
            return ''
        return self.names_by_code.get(label.upper(), label)

    def __len__(self) -> int:
        return len(self.names_by_code)


def _entry_value(entry: Any, *keys: str) -> str:
    for key in keys:
        if isinstance(entry, Mapping):
            value = entry.get(key)
        else:
            value = getattr(entry, key, None)
        if value:
            return str(value).strip()
    return ''


def build_carrier_directory(entries: Iterable[Any]) -> CarrierDirectory:
    """
    Build a CarrierDirectory from {code, name} pairs.

    Entries may be dicts, asyncpg records or CarrierDirectoryEntry objects and
    may use either 'code' or 'scac_code'. Entries missing a code or a name are
    skipped. When a code repeats, the first entry wins.
    """
    names_by_code = {}
    for entry in entries or []:
        code = _entry_value(entry, 'code', 'scac_code').upper()
        name = _entry_value(entry, 'name')
        if not code or not name:
            continue
        names_by_code.setdefault(code, name)

    return CarrierDirectory(names_by_code=MappingProxyType(names_by_code))


async def fetch_carrier_directory() -> CarrierDirectory:
    """
    Load the carrier directory from the carriers table.

    Returns:
        CarrierDirectory built from every carrier with a SCAC code.
    """
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT scac_code, name
            FROM carriers
            WHERE scac_code IS NOT NULL
            """
        )

    entries = [
        CarrierDirectoryEntry(code=row['scac_code'], name=row['name'])
        for row in rows
        if row['scac_code'] and row['name']
    ]
    directory = build_carrier_directory(entries)
    logger.info(f"Loaded carrier directory with {len(directory)} codes")
    return directory


__all__ = [
    'CarrierDirectory',
    'build_carrier_directory',
    'fetch_carrier_directory',
]
