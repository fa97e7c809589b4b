"""
Tests for phone masking.
"""

import pytest

from app.utils import mask_phone


@pytest.mark.parametrize(
    "phone, expected",
    [
        ("+15550001", "+15...01"),
        ("123456", "123...56"),
        ("+919876543210", "+91...10"),
    ],
)
def test_long_phone_is_masked(phone, expected):
    assert mask_phone(phone) == expected


@pytest.mark.parametrize("phone", ["12345", "1234", "+1", ""])
def test_short_phone_is_unchanged(phone):
    """Five characters or fewer are returned as-is."""
    assert mask_phone(phone) == phone


def test_masked_form_keeps_first_three_and_last_two():
    phone = "abcdefghij"
    masked = mask_phone(phone)

    assert masked.startswith(phone[:3])
    assert masked.endswith(phone[-2:])
    assert masked == "abc...ij"
