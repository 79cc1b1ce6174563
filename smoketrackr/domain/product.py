"""
Product domain constants

Типы продуктов - закрытый набор, используется для группировки потребления
"""

# Product types
PRODUCT_TYPE_CIGAR = "Cigar"
PRODUCT_TYPE_CIGARILLO = "Cigarillo"
PRODUCT_TYPE_CIGARETTE = "Cigarette"
PRODUCT_TYPE_SNUS = "Snus"
PRODUCT_TYPE_OTHER = "Other"

PRODUCT_TYPES = (
    PRODUCT_TYPE_CIGAR,
    PRODUCT_TYPE_CIGARILLO,
    PRODUCT_TYPE_CIGARETTE,
    PRODUCT_TYPE_SNUS,
    PRODUCT_TYPE_OTHER,
)

_TYPES_BY_LOWER = {t.lower(): t for t in PRODUCT_TYPES}


def is_valid_product_type(value: str) -> bool:
    return value in PRODUCT_TYPES


def normalize_product_type(value) -> str:
    """
    Привести произвольное значение к одному из PRODUCT_TYPES

    Регистр игнорируется, всё неизвестное становится "Other".

    Example:
        >>> normalize_product_type("cigar")
        'Cigar'
        >>> normalize_product_type("Pipe")
        'Other'
    """
    if value is None:
        return PRODUCT_TYPE_OTHER
    return _TYPES_BY_LOWER.get(str(value).strip().lower(), PRODUCT_TYPE_OTHER)
