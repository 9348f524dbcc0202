"""
Tests for ReferenceNumberService.

Reference numbers are allocated from one counter row per kind and are
never reused, so ``ST-000001`` and ``ADJ-000001`` can both exist.
"""

import pytest

from inventory_kernel.services.reference_service import ReferenceNumberService


@pytest.fixture
def references(session):
    return ReferenceNumberService(session)


class TestReferenceNumbers:

    def test_first_reference(self, references):
        assert references.next_reference(ReferenceNumberService.STOCK_TAKE) == "ST-000001"

    def test_sequential(self, references):
        refs = [references.next_reference(ReferenceNumberService.ADJUSTMENT) for _ in range(3)]
        assert refs == ["ADJ-000001", "ADJ-000002", "ADJ-000003"]

    def test_kinds_are_independent(self, references):
        references.next_reference(ReferenceNumberService.STOCK_TAKE)
        references.next_reference(ReferenceNumberService.STOCK_TAKE)
        assert references.next_reference(ReferenceNumberService.ADJUSTMENT) == "ADJ-000001"
        assert references.current_value(ReferenceNumberService.STOCK_TAKE) == 2

    def test_current_value_before_first_allocation(self, references):
        assert references.current_value(ReferenceNumberService.ADJUSTMENT) is None

    def test_custom_prefix_and_width(self, session):
        references = ReferenceNumberService(session, prefixes={"stock_take": "CNT"}, width=4)
        assert references.next_reference(ReferenceNumberService.STOCK_TAKE) == "CNT-0001"
        assert references.next_reference(ReferenceNumberService.ADJUSTMENT) == "ADJ-0001"

    def test_unknown_kind(self, references):
        with pytest.raises(ValueError):
            references.next_reference("invoice")

    def test_survives_commit(self, session, session_factory):
        ReferenceNumberService(session).next_reference(ReferenceNumberService.STOCK_TAKE)
        session.commit()

        other = session_factory()
        try:
            assert ReferenceNumberService(other).next_reference(
                ReferenceNumberService.STOCK_TAKE
            ) == "ST-000002"
        finally:
            other.rollback()
            other.close()
