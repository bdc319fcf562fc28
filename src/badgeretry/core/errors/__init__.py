"""Error classification and handling.

Re-exports all public symbols.
"""

from badgeretry.core.errors.codes import (
    CategoryTraits,
    ErrorCategory,
    Priority,
)
from badgeretry.core.errors.models import ClassifiedError
from badgeretry.core.errors.classifier import (
    DEFAULT_KEYWORD_TABLE,
    ErrorClassifier,
    classify,
)

__all__ = [
    "CategoryTraits",
    "ErrorCategory",
    "Priority",
    "ClassifiedError",
    "DEFAULT_KEYWORD_TABLE",
    "ErrorClassifier",
    "classify",
]
