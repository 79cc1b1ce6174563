"""
Validation utilities for amounts and quantities coming from forms / JSON
"""
import re
from decimal import Decimal, InvalidOperation


def normalize_decimal_input(value) -> str:
    """
    Нормализовать ввод числа: убрать пробелы, заменить запятую на точку

    Example:
        >>> normalize_decimal_input(" 0,5 ")
        "0.5"
    """
    return str(value).strip().replace(",", ".")


def validate_positive_decimal(value, max_decimal_places: int = 2) -> tuple[bool, str | None]:
    """
    Проверить, что значение - положительное число с ограничением знаков

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_positive_decimal("2.5")
        (True, None)
        >>> validate_positive_decimal("0")
        (False, "Value must be greater than zero")
    """
    normalized = normalize_decimal_input(value)

    try:
        decimal_value = Decimal(normalized)
    except (InvalidOperation, ValueError):
        return False, f"Invalid number: {value}"

    if not decimal_value.is_finite():
        return False, f"Invalid number: {value}"

    pattern = rf"^\d+(\.\d{{1,{max_decimal_places}}})?$"
    if not re.match(pattern, normalized):
        if decimal_value <= 0:
            return False, "Value must be greater than zero"
        return False, f"At most {max_decimal_places} decimal places allowed"

    if decimal_value <= 0:
        return False, "Value must be greater than zero"

    return True, None


def parse_positive_decimal(value, max_decimal_places: int = 2) -> Decimal:
    """
    Валидировать и вернуть Decimal (raise при ошибке)

    Raises:
        ValueError: если валидация не прошла
    """
    is_valid, error = validate_positive_decimal(value, max_decimal_places)
    if not is_valid:
        raise ValueError(error)
    return Decimal(normalize_decimal_input(value))


def parse_whole_quantity(value) -> int:
    """
    Количество покупки - только целое положительное число

    Example:
        >>> parse_whole_quantity("10")
        10
        >>> parse_whole_quantity("2.0")
        2
        >>> parse_whole_quantity("0.5")
        ValueError: Purchase quantity must be a whole number

    Raises:
        ValueError: если не целое или <= 0
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid number: {value}")
    try:
        decimal_value = Decimal(normalize_decimal_input(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid number: {value}")
    if not decimal_value.is_finite():
        raise ValueError(f"Invalid number: {value}")
    if decimal_value != decimal_value.to_integral_value():
        raise ValueError("Purchase quantity must be a whole number")
    if decimal_value <= 0:
        raise ValueError("Value must be greater than zero")
    return int(decimal_value)
