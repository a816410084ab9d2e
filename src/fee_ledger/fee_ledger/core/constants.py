"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

RECEIPT_NUMBER_WIDTH = 6
RECEIPT_PREFIX_LENGTH = 4
RECEIPT_PREFIX_FALLBACK = "REC"

MIN_INSTALLMENT_AMOUNT = 1
MAX_INSTALLMENTS = 24

DEFAULT_LIST_LIMIT = 200
DEFAULT_PENDING_LIMIT = 500
