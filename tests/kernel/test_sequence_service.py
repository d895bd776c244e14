"""
Tests for SequenceService and journal entry numbering.

Tests cover:
- First value, monotonic increments
- Independent sequences per name and per tenant
- Entry number formatting
"""

from farm_kernel.services.sequence_service import SequenceService, format_entry_number


class TestSequenceService:

    def test_first_value_is_one(self, session):
        service = SequenceService(session)
        assert service.current_value("je:t1") is None
        assert service.next_value("je:t1") == 1
        assert service.current_value("je:t1") == 1

    def test_values_increase(self, session):
        service = SequenceService(session)
        values = [service.next_value("je:t1") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_sequences_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("je:t1")
        service.next_value("je:t1")

        assert service.next_value("je:t2") == 1

    def test_tenant_sequence_name(self):
        assert SequenceService.journal_entry_sequence("ranch-7") == "journal_entry:ranch-7"


class TestEntryNumberFormat:

    def test_zero_padded(self):
        assert format_entry_number(1) == "JE-00001"
        assert format_entry_number(42) == "JE-00042"

    def test_wider_than_padding(self):
        assert format_entry_number(123456) == "JE-123456"

    def test_custom_prefix(self):
        assert format_entry_number(7, prefix="ADJ") == "ADJ-00007"
