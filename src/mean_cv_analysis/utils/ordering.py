"""Grid ordering for supergroup (row) and condition (column) labels.

Supergroups sort alphabetically. Conditions sort alphabetically except that a
condition named exactly "Control" always comes first, so the reference
condition leads every grid row.
"""

from typing import Iterable, List

from mean_cv_analysis.constants import CONTROL_CONDITION


def condition_sort_key(condition: str) -> tuple:
    """Key placing CONTROL_CONDITION before every other label."""
    return (0 if condition == CONTROL_CONDITION else 1, condition)


def order_conditions(conditions: Iterable[str]) -> List[str]:
    """Distinct conditions, "Control" first and the rest alphabetically.

    Examples:
        - ["Treat", "Control", "Alpha"] -> ["Control", "Alpha", "Treat"].
        - ["b", "a"] -> ["a", "b"].
    """
    return sorted(set(conditions), key=condition_sort_key)


def order_supergroups(supergroups: Iterable[str]) -> List[str]:
    """Distinct supergroups in alphabetical order."""
    return sorted(set(supergroups))
