"""
Field validators shared by the models and the core operations.
"""

import re

from django.core.exceptions import ValidationError as DjangoValidationError

from . import exceptions

BOOKING_NOTES_MAX_LENGTH = 1000
REVIEW_COMMENT_MIN_LENGTH = 10
REVIEW_COMMENT_MAX_LENGTH = 2000
RATING_MIN = 1
RATING_MAX = 5
OFFERING_TITLE_MAX_LENGTH = 100
DISPLAY_NAME_MAX_LENGTH = 150
PHONE_NUMBER_MAX_LENGTH = 20


def validate_phone_number(value):
    """
    Validate phone number format.

    Accepts international formats with optional country codes, spaces, dashes, and parentheses.
    Requires at least 10 digits.

    Valid formats:
    - +91 98765 43210
    - +1 (234) 567-8900
    - 234-567-8900
    - 9876543210

    Args:
        value: Phone number string to validate

    Raises:
        ValidationError: If phone number format is invalid
    """
    if not value:  # Empty string is allowed (optional field)
        return

    if len(value) > PHONE_NUMBER_MAX_LENGTH:
        raise DjangoValidationError(
            f'Phone number cannot exceed {PHONE_NUMBER_MAX_LENGTH} characters.',
            code='phone_too_long'
        )

    if not re.match(r'^[\d\s\-\+\(\)]+$', value):
        raise DjangoValidationError(
            'Phone number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_phone_chars'
        )

    digits = re.sub(r'\D', '', value)

    if len(digits) < 10:
        raise DjangoValidationError(
            'Phone number must contain at least 10 digits.',
            code='phone_too_short'
        )

    # Must not be all the same digit (like 0000000000)
    if len(set(digits)) == 1:
        raise DjangoValidationError(
            'Phone number cannot be all the same digit.',
            code='invalid_phone_pattern'
        )


def validate_booking_notes(value):
    """Customer notes are optional but bounded."""
    if not isinstance(value, str):
        raise DjangoValidationError('Notes must be text.', code='notes_not_text')
    if len(value) > BOOKING_NOTES_MAX_LENGTH:
        raise DjangoValidationError(
            f'Notes cannot exceed {BOOKING_NOTES_MAX_LENGTH} characters.',
            code='notes_too_long'
        )


def validate_rating(value):
    """
    Validate a review rating.

    Booleans are rejected even though ``True`` is an ``int`` in Python.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise DjangoValidationError('Rating must be a whole number.', code='rating_not_integer')
    if value < RATING_MIN or value > RATING_MAX:
        raise DjangoValidationError(
            f'Rating must be between {RATING_MIN} and {RATING_MAX}.',
            code='rating_out_of_range'
        )


def validate_review_comment(value):
    """
    Validate a review comment.

    Length is measured after stripping surrounding whitespace so a comment
    padded with spaces cannot pass the minimum.
    """
    if value is not None and not isinstance(value, str):
        raise DjangoValidationError('Comment must be text.', code='comment_not_text')
    length = len((value or '').strip())
    if length < REVIEW_COMMENT_MIN_LENGTH:
        raise DjangoValidationError(
            f'Comment must be at least {REVIEW_COMMENT_MIN_LENGTH} characters.',
            code='comment_too_short'
        )
    if length > REVIEW_COMMENT_MAX_LENGTH:
        raise DjangoValidationError(
            f'Comment cannot exceed {REVIEW_COMMENT_MAX_LENGTH} characters.',
            code='comment_too_long'
        )


def check(validator, value, field):
    """
    Run a field validator and re-raise its failure as a core ValidationError.

    Args:
        validator: Callable raising django.core.exceptions.ValidationError
        value: Value to validate
        field: Field name used as the message prefix
    """
    try:
        validator(value)
    except DjangoValidationError as exc:
        raise exceptions.ValidationError(f"{field}: {' '.join(exc.messages)}") from exc
