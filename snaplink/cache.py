import redis
from snaplink.config import settings

redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    decode_responses=True,
    socket_timeout=1.0,
    socket_connect_timeout=1.0
)

VISITOR_PREFIX = "visitor:"  # Отметки посетителей ссылки: visitor:<link_id>:<ip>

def get_visitor_key(link_id: int, ip_address: str) -> str:
    """Формирует ключ отметки посетителя ссылки"""
    return f"{VISITOR_PREFIX}{link_id}:{ip_address}"

def mark_visitor(link_id: int, ip_address: str, window: int = settings.UNIQUE_VISITOR_WINDOW) -> bool:
    """Ставит отметку посетителя на окно уникальности.

    Возвращает True, если отметки не было, то есть посетитель уникален.
    Исключения redis пробрасываются вызывающему коду.
    """
    key = get_visitor_key(link_id, ip_address)
    return bool(redis_client.set(key, "1", nx=True, ex=window))
