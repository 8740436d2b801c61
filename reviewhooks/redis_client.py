import redis

from reviewhooks.config import settings

# short timeouts: webhook responses must not wait on a sick redis
redis_client = redis.Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_connect_timeout=2,
    socket_timeout=2,
)

# redis connectivity check
def redis_ping() -> bool:
    try:
        return bool(redis_client.ping())
    except Exception:
        return False
