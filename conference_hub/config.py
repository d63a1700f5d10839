import os


SQLALCHEMY_DATABASE_URL = os.getenv(
    "CONFERENCE_HUB_DATABASE_URL", "sqlite:///./data/conference_hub.db"
)

# JWT configuration
SECRET_KEY = os.getenv("CONFERENCE_HUB_SECRET_KEY", "change-me-conference-hub-secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("CONFERENCE_HUB_TOKEN_EXPIRE_MINUTES", "30"))

# Serverless functions used for email delivery
FUNCTIONS_URL = os.getenv("CONFERENCE_HUB_FUNCTIONS_URL", "")
FUNCTIONS_KEY = os.getenv("CONFERENCE_HUB_FUNCTIONS_KEY", "")
FUNCTIONS_TIMEOUT = float(os.getenv("CONFERENCE_HUB_FUNCTIONS_TIMEOUT", "10"))

LOG_LEVEL = os.getenv("CONFERENCE_HUB_LOG_LEVEL", "INFO")

HOST = os.getenv("CONFERENCE_HUB_HOST", "127.0.0.1")
PORT = int(os.getenv("CONFERENCE_HUB_PORT", "8000"))

MAX_BATCH_BOOKINGS = int(os.getenv("CONFERENCE_HUB_MAX_BATCH_BOOKINGS", "5"))

# Room availability defaults, applied when a room has no settings yet.
# Rooms without operating hours can be booked around the clock.
DEFAULT_MAX_BOOKINGS_PER_DAY = 1
DEFAULT_MAX_BOOKINGS_PER_WEEK = 5
DEFAULT_MIN_BOOKING_MINUTES = 30
DEFAULT_MAX_BOOKING_MINUTES = 480
DEFAULT_BUFFER_MINUTES = 0
DEFAULT_ADVANCE_BOOKING_DAYS = 30

# Window used when listing free slots for rooms without operating hours
DAY_START_HOUR = 8
DAY_END_HOUR = 18

CONFIRMED_DELETE_NOTICE_HOURS = 24
CHECK_IN_EARLY_MINUTES = 15
# Confirmed bookings nobody checked in to are released after this many minutes
CHECK_IN_GRACE_MINUTES = int(os.getenv("CONFERENCE_HUB_CHECK_IN_GRACE_MINUTES", "15"))
