"""Application-wide constants for the scheduling service."""

# API metadata
API_TITLE = "Scheduling API"
API_DESCRIPTION = (
    "Compute bookable slots from weekly availability rules, and book, "
    "reschedule or cancel them with signed action links."
)
API_VERSION = "1.0.0"
BRAND_NAME = "Scheduling"

# Mount points
API_V1_PREFIX = "/api/v1"
SCHEDULING_PREFIX = "/scheduling"
ADMIN_SCHEDULING_PREFIX = "/admin/scheduling"

# Text constraints
MAX_REASON_LENGTH = 500
