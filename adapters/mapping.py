"""
Field mapping shared by the product source adapters.
"""

from typing import Optional


def map_nutriscore_grade(grade: Optional[str]) -> Optional[str]:
    """'a'..'e' -> 'A'..'E'; anything else -> None"""
    if not grade or len(grade) != 1:
        return None
    upper = grade.upper()
    return upper if upper in "ABCDE" else None
