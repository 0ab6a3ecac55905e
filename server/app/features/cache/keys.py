"""
Cache key prefixes and default TTLs
"""


class CacheKeys:
    USER_PROFILE = "user:profile:"
    USER_BY_CLERK = "user:clerk:"
    USER_POSTS = "user:posts:"
    POST = "post:"
    POST_FEED = "feed:"
    FRIENDS = "friends:"
    FOLLOWERS = "followers:"
    FOLLOWING = "following:"
    PLACE = "place:"
    NOTIFICATIONS = "notifications:"
    RATE_LIMIT = "ratelimit:"
    SESSION = "session:"


class CacheTTL:
    """TTLs in seconds"""
    USER_PROFILE = 300   # 5 minutes
    USER_POSTS = 120     # 2 minutes
    POST = 300           # 5 minutes
    POST_FEED = 60       # 1 minute
    FRIENDS = 300
    FOLLOWERS = 300
    FOLLOWING = 300
    PLACE = 600          # 10 minutes
    NOTIFICATIONS = 60
    SESSION = 3600       # 1 hour
    SHORT = 30
    MEDIUM = 300
    LONG = 3600


# Orphaned keys removed by the periodic cleanup job
STALE_CACHE_PATTERNS = (
    "temp:*",
    "session:expired:*",
)
