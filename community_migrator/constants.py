"""Shared constants for the community migration tool."""

# HTTP status codes
HTTP_NOT_FOUND = 404
HTTP_FORBIDDEN = 403
HTTP_RATE_LIMIT = 429
HTTP_SERVER_ERROR_MIN = 500

# Source store (MongoDB) collections
SOURCE_COMMUNITIES = "communities"
SOURCE_USERS = "users"
SOURCE_CHANNELS = "channels"
SOURCE_MESSAGES = "messages"

# Firestore collections (secondary identity store and target store)
USERS_COLLECTION = "users"
COMMUNITIES_COLLECTION = "communities"
MEMBERS_COLLECTION = "communityMembers"

# Field on target identity documents holding the source user id
EXTERNAL_ID_FIELD = "mongoId"
SOURCE_COMMUNITY_FIELD = "sourceCommunityId"

# Firestore accepts at most 500 writes per batch
MAX_BATCH_SIZE = 500
DEFAULT_MESSAGE_LIMIT = 100

FALLBACK_EMAIL_DOMAIN = "example.com"
DEFAULT_CONTENT_TYPE = "image/jpeg"
DEFAULT_SENDER_AVATAR = "https://static.productionready.io/images/smiley-cyrus.jpg"

# Firebase Storage download URLs: /v0/b/<bucket>/o/<url-encoded object path>
FIREBASE_DOWNLOAD_URL_PATTERN = (
    r"https://firebasestorage\.googleapis\.com/v0/b/([^/]+)/o/([^?]+)"
)
PUBLIC_URL_TEMPLATE = "https://storage.googleapis.com/{bucket}/{path}"

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"
STATUS_ACTIVE = "active"
