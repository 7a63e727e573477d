"""
Formatting helpers for documents and messages.
Brazilian style: R$ 1.234,56 and dd/mm/aaaa.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union


def money_br(cents: Optional[int], symbol: bool = True) -> str:
    """
    Format an amount in cents as Brazilian reais.

    Examples:
        money_br(123456) -> "R$ 1.234,56"
        money_br(-500) -> "-R$ 5,00"
        money_br(None) -> "R$ 0,00"
    """
    try:
        value = Decimal(int(cents or 0)) / 100
    except (InvalidOperation, ValueError, TypeError):
        value = Decimal(0)

    negative = value < 0
    integer_part, decimal_part = f"{abs(value):.2f}".split('.')

    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)

    text = f"{'.'.join(groups)},{decimal_part}"
    if symbol:
        text = f"R$ {text}"
    return f"-{text}" if negative else text


def percent_br(value: Union[int, float, Decimal, None]) -> str:
    """12.5 -> "12,5%"; whole numbers drop the decimals."""
    if value is None:
        return '0%'
    number = Decimal(str(value)).normalize()
    if number == number.to_integral():
        return f"{int(number)}%"
    return f"{number}".replace('.', ',') + '%'


def date_br(value: Union[date, datetime, str, None], default: str = '') -> str:
    """Date as dd/mm/aaaa."""
    if not value:
        return default
    if isinstance(value, str):
        try:
            value = datetime.strptime(value[:10], '%Y-%m-%d').date()
        except ValueError:
            return value
    return value.strftime('%d/%m/%Y')


def datetime_br(value: Optional[datetime], default: str = '') -> str:
    """Datetime as dd/mm/aaaa HH:MM."""
    if not value:
        return default
    return value.strftime('%d/%m/%Y %H:%M')
