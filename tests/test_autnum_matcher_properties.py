"""
Property-based tests for the autonomous system number matcher.

Uses Hypothesis for property-based testing of range and handle matching
over stored AS blocks.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from rdap_server.autnum_matcher import AutnumMatcher, select_autnum
from rdap_server.exceptions import DataError, DecodeError, NotFoundError
from rdap_server.models import MAX_AUTNUM, AutnumBlock
from rdap_server.record_store import MemoryRecordStore


# Strategies for generating valid test data

@st.composite
def autnum_record_strategy(draw) -> dict:
    """Generate an AS block record within a small number space."""
    start = draw(st.integers(min_value=0, max_value=500))
    end = draw(st.integers(min_value=start, max_value=500))
    record = {"start_autnum": start, "end_autnum": end}
    if draw(st.booleans()):
        record["handle"] = f"AS{draw(st.integers(min_value=0, max_value=500))}"
    return record


def store_of(records: list) -> MemoryRecordStore:
    return MemoryRecordStore({f"autnum/as-{i:04d}": record for i, record in enumerate(records)})


def run(coro):
    return asyncio.run(coro)


class TestAutnumMatchProperty:
    """Property-based tests for AS block selection."""

    @given(
        records=st.lists(autnum_record_strategy(), min_size=0, max_size=10),
        asn=st.integers(min_value=0, max_value=500),
    )
    @settings(max_examples=200)
    def test_match_iff_range_or_handle_hit(self, records: list, asn: int) -> None:
        """
        Property: a block is returned iff some stored block's range contains
        the number or its handle is exactly 'AS<number>'.
        """
        expected = any(
            r["start_autnum"] <= asn <= r["end_autnum"] or r.get("handle") == f"AS{asn}"
            for r in records
        )

        block = select_autnum(records, asn)

        assert (block is not None) == expected
        if block is not None:
            assert block.matches(asn)

    @given(
        records=st.lists(autnum_record_strategy(), min_size=1, max_size=10),
        asn=st.integers(min_value=0, max_value=500),
    )
    @settings(max_examples=100)
    def test_first_match_in_key_order_wins(self, records: list, asn: int) -> None:
        """Property: the first matching record in store key order is returned."""
        store = store_of(records)
        matching = [
            r for r in records
            if r["start_autnum"] <= asn <= r["end_autnum"] or r.get("handle") == f"AS{asn}"
        ]

        if not matching:
            with pytest.raises(NotFoundError):
                run(AutnumMatcher(store).find_autnum(asn))
            return

        block = run(AutnumMatcher(store).find_autnum(asn))
        assert block.record == matching[0]


class TestAutnumMatcherExamples:
    """Example-based tests for the AS matcher."""

    def test_range_hit_and_miss(self) -> None:
        store = store_of([{"handle": "AS150", "start_autnum": 100, "end_autnum": 200}])
        matcher = AutnumMatcher(store)

        assert run(matcher.find_autnum(150)).handle == "AS150"
        assert run(matcher.find_autnum("AS100")).start_autnum == 100
        with pytest.raises(NotFoundError):
            run(matcher.find_autnum(99))

    def test_handle_only_block(self) -> None:
        store = store_of([{"handle": "AS64512", "name": "PRIVATE"}])

        block = run(AutnumMatcher(store).find_autnum("as64512"))

        assert block.record["name"] == "PRIVATE"
        assert block.start_autnum is None

    def test_handle_only_block_has_no_range(self) -> None:
        block = AutnumBlock.from_record({"handle": "AS64512"})

        assert not block.matches(0)
        assert block.matches(64512)
        with pytest.raises(NotFoundError):
            run(AutnumMatcher(store_of([{"handle": "AS64512"}])).find_autnum(0))

    def test_missing_end_defaults_to_start(self) -> None:
        block = AutnumBlock.from_record({"startAutnum": 7})

        assert block.end_autnum == 7
        assert block.matches(7)
        assert not block.matches(8)

    def test_top_of_range(self) -> None:
        store = store_of([{"start_autnum": MAX_AUTNUM - 1, "end_autnum": MAX_AUTNUM}])
        assert run(AutnumMatcher(store).find_autnum(MAX_AUTNUM)).end_autnum == MAX_AUTNUM

    def test_invalid_query(self) -> None:
        with pytest.raises(DecodeError):
            run(AutnumMatcher(store_of([])).find_autnum("ASX"))

    @pytest.mark.parametrize(
        "record",
        [
            {"start_autnum": "100"},
            {"start_autnum": 200, "end_autnum": 100},
            {"start_autnum": MAX_AUTNUM + 1},
            {"start_autnum": 1, "handle": 5},
        ],
    )
    def test_malformed_block_raises_data_error(self, record: dict) -> None:
        with pytest.raises(DataError):
            run(AutnumMatcher(store_of([record])).find_autnum(1))
