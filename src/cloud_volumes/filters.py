"""
Filter expressions for cloud API index calls.

The API accepts filters as ``<field><op><value>`` strings where ``op`` is
``==`` or ``<>``.
"""

import re
from typing import Any, List, Mapping

_NOT_EQUAL = re.compile(r"^(?:!|<>)(.*)$", re.DOTALL)
_EQUAL = re.compile(r"^(?:==)?(.*)$", re.DOTALL)


def build_filters(filters: Mapping[str, Any]) -> List[str]:
    """
    Build filter expressions from field/predicate pairs.

    A predicate prefixed with ``!`` or ``<>`` becomes a not-equal filter,
    anything else (optionally prefixed with ``==``) an equal filter.

    Args:
        filters: Field name to predicate mapping

    Returns:
        One expression per entry, in input order

    Example:
        >>> build_filters({"resource_uid": "!abc"})
        ['resource_uid<>abc']
    """
    expressions = []
    for name, predicate in filters.items():
        text = str(predicate)
        match = _NOT_EQUAL.match(text)
        if match:
            operator = "<>"
        else:
            match = _EQUAL.match(text)
            operator = "=="
        expressions.append(f"{name}{operator}{match.group(1)}")
    return expressions


__all__ = ["build_filters"]
