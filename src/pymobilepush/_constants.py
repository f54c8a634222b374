"""Internal constants shared across the library."""

BASE_URL = "https://consumer.exacttargetapis.com"
USER_AGENT = "pymobilepush/1.0"
SDK_VERSION = "3.4.0"

REGISTRATION_ENDPOINT = "/device/v1/registration"
ANALYTICS_ENDPOINT = "/device/v1/event/analytic"

# HTTP status codes that indicate a transient server-side condition.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 425, 429})
AUTH_STATUS_CODES: frozenset[int] = frozenset({401, 403})

# ------------------------------------------------------------------
# Persistent store keys
# ------------------------------------------------------------------

KEY_DEVICE_ID = "device_id"
KEY_REGISTRATION = "registration"
KEY_SUBSCRIBER_KEY = "subscriber_key"
KEY_TAGS = "tags"
KEY_ATTRIBUTES = "attributes"
KEY_SYNC_STATE = "sync_state"
KEY_PENDING_FACTS = "pending_facts"
KEY_LAST_SYNCED = "last_synced_snapshot"

# ------------------------------------------------------------------
# Notification payload keys
# ------------------------------------------------------------------

PAYLOAD_APS = "aps"
PAYLOAD_MESSAGE_ID = "_m"
PAYLOAD_OPEN_DIRECT = "_od"
LAUNCH_OPTION_REMOTE_NOTIFICATION = "remote_notification"
LAUNCH_OPTION_LOCAL_NOTIFICATION = "local_notification"
