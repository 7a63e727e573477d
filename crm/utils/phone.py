"""
Brazilian phone number helpers.

WhatsApp numbers reach us with or without the country code and with or
without the mobile "9" after the area code, so lookups try every variant.
"""
import re
from typing import Set

COUNTRY_CODE = '55'


def only_digits(value) -> str:
    """Strip everything but digits."""
    return re.sub(r'\D', '', value or '')


def normalize_brazilian_phone(phone) -> Set[str]:
    """
    Return the set of digit strings under which ``phone`` may be stored.

    Examples:
        '5511987654321' -> {'5511987654321', '551187654321'}
        '551187654321'  -> {'551187654321', '5511987654321'}
        '11987654321'   -> {'11987654321', '5511987654321', '551187654321'}
        '1187654321'    -> {'1187654321', '551187654321', '5511987654321'}
    """
    clean = only_digits(phone)
    if not clean:
        return set()

    variants = {clean}
    length = len(clean)

    if length == 13 and clean.startswith(COUNTRY_CODE):
        variants.add(clean[:4] + clean[5:])
    elif length == 12 and clean.startswith(COUNTRY_CODE):
        variants.add(clean[:4] + '9' + clean[4:])
    elif length == 11:
        variants.add(COUNTRY_CODE + clean)
        variants.add(COUNTRY_CODE + clean[:2] + clean[3:])
    elif length == 10:
        variants.add(COUNTRY_CODE + clean)
        variants.add(COUNTRY_CODE + clean[:2] + '9' + clean[2:])

    return variants
