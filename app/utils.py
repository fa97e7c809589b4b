"""
Utility functions for the messaging API.
"""

MASK_FILLER = "..."


def mask_phone(phone: str) -> str:
    """
    Redact a phone number for display.

    Phones longer than 5 characters keep their first 3 and last 2
    characters around a literal ellipsis; shorter ones are returned as-is.

    Args:
        phone: Phone number as stored

    Returns:
        Masked phone string
    """
    if len(phone) > 5:
        return phone[:3] + MASK_FILLER + phone[-2:]
    return phone
