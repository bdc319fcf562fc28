"""ErrorClassifier implementation for keyword-based failure classification.

Maps the free-text message of a failed mint/verify call to one of the
ErrorCategory buckets. Classification never raises: anything unrecognised
becomes ``unknown_error``.
"""

from __future__ import annotations

from collections.abc import Sequence

from badgeretry.core.logging import get_logger

from .codes import ErrorCategory
from .models import ClassifiedError

_logger = get_logger("errors")


# =============================================================================
# Default keyword table.
# Order is precedence: the first keyword found in the message wins, so
# "insufficient funds for gas" classifies as gas_error.
# =============================================================================

DEFAULT_KEYWORD_TABLE: tuple[tuple[str, ErrorCategory], ...] = (
    ("gas", ErrorCategory.GAS),
    ("network", ErrorCategory.NETWORK),
    ("timeout", ErrorCategory.TIMEOUT),
    ("nullifier", ErrorCategory.NULLIFIER_REUSE),
    ("nonce", ErrorCategory.NONCE),
    ("insufficient", ErrorCategory.BALANCE),
    ("reverted", ErrorCategory.TRANSACTION_REVERTED),
)


class ErrorClassifier:
    """Classifies failure messages by scanning an ordered keyword table.

    Matching is a case-insensitive substring search. When a message contains
    several keywords, the earliest entry in the table wins, not the most
    specific or the highest priority one.
    """

    def __init__(
        self,
        keyword_table: Sequence[tuple[str, ErrorCategory]] | None = None,
    ) -> None:
        """Initialize classifier with an ordered keyword table.

        Args:
            keyword_table: ``(keyword, category)`` pairs in precedence order.
                Defaults to DEFAULT_KEYWORD_TABLE.
        """
        table = DEFAULT_KEYWORD_TABLE if keyword_table is None else keyword_table
        self.keyword_table: tuple[tuple[str, ErrorCategory], ...] = tuple(
            (keyword.lower(), category) for keyword, category in table
        )

    def classify(self, message: str | None) -> ClassifiedError:
        """Classify a raw failure message.

        Args:
            message: Error text from a failed transaction or API call.
                Empty or None classifies as unknown_error.

        Returns:
            ClassifiedError with the first matching category.
        """
        text = message or ""
        lowered = text.lower()

        for keyword, category in self.keyword_table:
            if keyword and keyword in lowered:
                _logger.debug(
                    "errors.classified",
                    category=category.value,
                    keyword=keyword,
                )
                return ClassifiedError(category=category, message=text, matched_keyword=keyword)

        _logger.debug("errors.unclassified", message_length=len(text))
        return ClassifiedError(category=ErrorCategory.UNKNOWN, message=text)

    def classify_category(self, message: str | None) -> ErrorCategory:
        """Shortcut returning only the category."""
        return self.classify(message).category


_default_classifier = ErrorClassifier()


def classify(message: str | None) -> ClassifiedError:
    """Classify a message with the default keyword table."""
    return _default_classifier.classify(message)
