"""
Validation utilities for API input
"""
import re
from decimal import Decimal, InvalidOperation


def normalize_decimal_input(value: str) -> str:
    """
    Нормализовать ввод суммы: убрать пробелы, заменить запятую на точку

    Example:
        >>> normalize_decimal_input(" 1200,50 ")
        "1200.50"
    """
    return value.strip().replace(",", ".")


def validate_and_normalize_amount(value: str, max_decimal_places: int = 2) -> str:
    """
    Validate a non-negative billing amount and return it normalized

    Raises:
        ValueError: некорректная сумма или слишком много знаков после запятой

    Example:
        >>> validate_and_normalize_amount("980,5")
        "980.5"
        >>> validate_and_normalize_amount("100.505")
        ValueError: Максимум 2 знака после запятой
    """
    normalized = normalize_decimal_input(value)
    try:
        Decimal(normalized)
    except (InvalidOperation, ValueError):
        raise ValueError("Некорректная сумма")

    if not re.match(rf"^\d+(\.\d{{1,{max_decimal_places}}})?$", normalized):
        if normalized.startswith("-"):
            raise ValueError("Сумма не может быть отрицательной")
        raise ValueError(f"Максимум {max_decimal_places} знака после запятой")
    return normalized


def validate_year_month_key(value: str) -> str:
    """'YYYY-MM' check for API payloads (month keys are exchanged in this form)."""
    value = value.strip()
    if not re.match(r"^\d{4}-(0[1-9]|1[0-2])$", value):
        raise ValueError(f"Ожидается формат YYYY-MM: {value}")
    return value
