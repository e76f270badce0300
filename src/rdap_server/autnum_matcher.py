"""
Autonomous system number matching.

Stored AS blocks may overlap; the first block in key order whose range
contains the ASN, or whose handle is exactly ``AS<asn>``, wins.
"""

from typing import Any, Iterable, Optional, Union

from .enums import ResourceType
from .exceptions import NotFoundError
from .handle_validator import parse_asn
from .models import AutnumBlock
from .record_store import RecordStore


def select_autnum(records: Iterable[Any], asn: int) -> Optional[AutnumBlock]:
    """
    Return the first stored block matching ``asn``.

    Raises:
        DataError: If a record scanned before the match is malformed
    """
    for raw in records:
        block = AutnumBlock.from_record(raw)
        if block.matches(asn):
            return block
    return None


class AutnumMatcher:
    """Resolves AS number queries against the stored AS blocks."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def find_autnum(self, asn: Union[int, str]) -> AutnumBlock:
        """
        Find the AS block for ``asn``.

        Raises:
            DecodeError: If ``asn`` is not an unsigned 32-bit number
            NotFoundError: If no block matches
        """
        asn = parse_asn(asn)
        records = await self._store.get([ResourceType.AUTONOMOUS_SYSTEM.wildcard_key()])
        block = select_autnum(records, asn)
        if block is None:
            raise NotFoundError(
                code="not_found",
                message=f"No autonomous system block found for AS{asn}",
                details={"asn": asn},
            )
        return block
