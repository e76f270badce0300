"""
Network block matching.

Finds the narrowest stored network block that covers a queried IP address
or CIDR range. Blocks are inclusive address ranges and need not be aligned
to a prefix boundary.
"""

from typing import Any, Iterable, Optional, Union

from .enums import ResourceType
from .exceptions import NotFoundError
from .handle_validator import parse_ip_query
from .models import IPNetwork, NetworkBlock
from .record_store import RecordStore


def select_network(records: Iterable[Any], query: IPNetwork) -> Optional[NetworkBlock]:
    """
    Pick the narrowest block covering ``query`` from a scan of stored records.

    A block is a candidate when its range holds every address of the query
    (which also guarantees it is at least as large as the query). Among
    candidates the smallest size wins; equal sizes go to the lowest start
    address, and fully identical ranges to the first record scanned.
    Records whose start and end are in different families, or in a family
    other than the query's, are skipped.

    Raises:
        DataError: If a stored record lacks valid addresses
    """
    best: Optional[NetworkBlock] = None

    for raw in records:
        block = NetworkBlock.from_record(raw)
        if block.is_mixed_family or block.version != query.version:
            continue
        if not block.covers(query):
            continue
        if best is None or _rank(block) < _rank(best):
            best = block

    return best


def _rank(block: NetworkBlock) -> tuple[int, int]:
    return block.size, int(block.start_address)


class NetworkMatcher:
    """Resolves IP queries against the stored network blocks."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def find_network(self, query: Union[str, IPNetwork]) -> NetworkBlock:
        """
        Find the most specific network block containing ``query``.

        Args:
            query: An IP address, a CIDR string, or a parsed network

        Returns:
            The matching NetworkBlock (its ``record`` is the stored record)

        Raises:
            DecodeError: If the query is not a valid address or CIDR
            NotFoundError: If no stored block covers the query
            DataError: If a stored block is malformed
        """
        if isinstance(query, str):
            query = parse_ip_query(query)

        records = await self._store.get([ResourceType.NETWORK.wildcard_key()])
        block = select_network(records, query)
        if block is None:
            raise NotFoundError(
                code="not_found",
                message=f"No network block found for {query}",
                details={"query": str(query)},
            )
        return block
