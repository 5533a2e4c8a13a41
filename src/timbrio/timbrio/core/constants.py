"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_TOKEN_TTL_SECONDS = 300
DEFAULT_LATE_TOLERANCE_MINUTES = 5
DEFAULT_SCHEDULED_HOURS = 8.0
DEFAULT_REQUEST_LIST_LIMIT = 200
DEFAULT_HISTORY_LIMIT = 200

# Discriminator carried in every kiosk QR payload.
QR_PAYLOAD_TYPE = "timbrio_qr"
QR_PAYLOAD_ACTION = "timbratura"

EXPORT_FIELDS = ("badge", "timestamp", "direction", "commessa")
