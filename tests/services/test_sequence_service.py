"""
SequenceService tests: voucher numbers per prefix and day.
"""

from datetime import date

from ledger_kernel.services.sequence_service import SequenceService, format_voucher_no


def test_format():
    assert format_voucher_no("RV", date(2024, 6, 15), 7) == "RV-20240615-0007"
    assert format_voucher_no("JV", date(2024, 6, 15), 12345) == "JV-20240615-12345"


def test_numbers_increase_per_prefix_and_day(session):
    sequences = SequenceService(session)
    day = date(2024, 6, 15)

    assert sequences.next_voucher_no("RV", day) == "RV-20240615-0001"
    assert sequences.next_voucher_no("RV", day) == "RV-20240615-0002"
    assert sequences.next_voucher_no("PV", day) == "PV-20240615-0001"
    assert sequences.next_voucher_no("RV", date(2024, 6, 16)) == "RV-20240616-0001"
    assert sequences.next_voucher_no("RV", day) == "RV-20240615-0003"


def test_current_value(session):
    sequences = SequenceService(session)
    assert sequences.current_value("RV-20240615") is None
    sequences.next_voucher_no("RV", date(2024, 6, 15))
    sequences.next_voucher_no("RV", date(2024, 6, 15))
    assert sequences.current_value("RV-20240615") == 2
