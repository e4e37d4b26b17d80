"""Application-wide constants for the FitPass payouts service."""

BRAND_NAME = "FitPass"

# Payout batch
ZERO_AMOUNT_PAYOUT_MESSAGE = "No transfer needed - amount is 0"
NO_USAGE_MESSAGE = "No usage data for this period"
NO_PENDING_PAYOUTS_MESSAGE = "No pending payouts for this period"

# Query limits
DEFAULT_CLUB_PAYOUT_HISTORY = 12
MAX_CLUB_PAYOUT_HISTORY = 100

# Stored error text is truncated to this length
MAX_ERROR_MESSAGE_LENGTH = 1000
