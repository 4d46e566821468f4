import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from passlib.context import CryptContext
from snaplink.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SHORT_CODE_ALPHABET = string.ascii_letters + string.digits + "-_"
SHORT_CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

def generate_short_code(length: int = settings.DEFAULT_SHORT_CODE_LENGTH) -> str:
    """Генерирует случайный короткий код указанной длины"""
    return ''.join(secrets.choice(SHORT_CODE_ALPHABET) for _ in range(length))

def is_valid_short_code(code: Optional[str]) -> bool:
    """Проверяет длину и набор символов короткого кода"""
    if not code:
        return False
    if not settings.MIN_CUSTOM_ALIAS_LENGTH <= len(code) <= settings.MAX_CUSTOM_ALIAS_LENGTH:
        return False
    return SHORT_CODE_PATTERN.fullmatch(code) is not None

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет соответствие пароля хешу"""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Хеширует пароль"""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Создает JWT токен доступа"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def build_short_url(short_code: str) -> str:
    """Создает полный короткий URL с базовым URL приложения"""
    return f"{settings.BASE_URL}/{short_code}"

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Приводит наивное время (SQLite) к UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Проверяет, истек ли срок действия ссылки"""
    if not expires_at:
        return False

    now = now or datetime.now(timezone.utc)
    return now > as_utc(expires_at)

def link_status(link) -> str:
    if not link.is_active:
        return "inactive"
    if is_expired(link.expires_at):
        return "expired"
    return "active"

def resolve_client_ip(peer: Optional[str], forwarded_for: Optional[str],
                      trusted_hops: int = settings.TRUSTED_PROXY_HOPS) -> Optional[str]:
    """Определяет IP клиента с учетом доверенных прокси"""
    chain = []
    if forwarded_for and trusted_hops > 0:
        chain = [part.strip() for part in forwarded_for.split(",") if part.strip()]
    if peer:
        chain.append(peer)
    if not chain:
        return None

    # Каждый доверенный прокси добавляет в цепочку адрес предыдущего звена
    index = max(len(chain) - 1 - trusted_hops, 0)
    return chain[index]

def extract_client_info(request) -> dict:
    """Извлекает информацию о клиенте из запроса"""
    return {
        "ip_address": resolve_client_ip(
            request.client.host if request.client else None,
            request.headers.get("x-forwarded-for")
        ),
        "user_agent": request.headers.get("user-agent"),
        "referer": request.headers.get("referer"),
        "timestamp": datetime.now(timezone.utc)
    }
