"""Выдача коротких кодов и создание ссылок.

Единственный источник истины об уникальности кода - уникальный индекс
``links.short_code``. Проверка существования перед вставкой лишь отсеивает
очевидные коллизии, а ``IntegrityError`` при вставке считается коллизией.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from snaplink.config import settings
from snaplink.errors import ErrorCode, LinkError
from snaplink.models import Link
from snaplink.utils import generate_short_code, get_password_hash, is_valid_short_code

logger = logging.getLogger(__name__)

# Совпадают с путями API и не могут быть кодами
RESERVED_CODES = {"links", "analytics", "docs", "redoc", "openapi.json"}


def code_exists(db: Session, short_code: str) -> bool:
    return db.query(Link.id).filter(Link.short_code == short_code).first() is not None


def validate_custom_alias(custom_alias: str) -> str:
    if not is_valid_short_code(custom_alias):
        raise LinkError(
            ErrorCode.VALIDATION,
            f"Алиас должен содержать от {settings.MIN_CUSTOM_ALIAS_LENGTH} до "
            f"{settings.MAX_CUSTOM_ALIAS_LENGTH} символов: латинские буквы, цифры, '-' и '_'"
        )
    if custom_alias.lower() in RESERVED_CODES:
        raise LinkError(ErrorCode.VALIDATION, f"Алиас {custom_alias!r} зарезервирован")
    return custom_alias


def allocate_short_code(
    db: Session,
    custom_alias: Optional[str] = None,
    max_attempts: int = settings.MAX_GENERATION_ATTEMPTS,
    length: int = settings.DEFAULT_SHORT_CODE_LENGTH
) -> str:
    """Возвращает код, которого на момент проверки нет в хранилище"""
    try:
        if custom_alias is not None:
            validate_custom_alias(custom_alias)
            if code_exists(db, custom_alias):
                raise LinkError(ErrorCode.ALIAS_TAKEN)
            return custom_alias

        for _ in range(max_attempts):
            candidate = generate_short_code(length)
            if not code_exists(db, candidate):
                return candidate
    except SQLAlchemyError as e:
        logger.error("Ошибка хранилища при выдаче кода: %s", e)
        raise LinkError(ErrorCode.PERSISTENCE_FAILURE) from e

    logger.warning("Не удалось подобрать свободный код за %d попыток", max_attempts)
    raise LinkError(ErrorCode.GENERATION_EXHAUSTED)


def create_link(
    db: Session,
    original_url: str,
    custom_alias: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    password: Optional[str] = None,
    owner_id: Optional[int] = None,
    title: Optional[str] = None,
    description: Optional[str] = None
) -> Link:
    """Создает короткую ссылку с гарантией уникальности кода"""
    password_hash = get_password_hash(password) if password else None
    attempts_left = settings.MAX_GENERATION_ATTEMPTS

    while True:
        short_code = allocate_short_code(db, custom_alias, max_attempts=attempts_left)

        link = Link(
            short_code=short_code,
            original_url=original_url,
            is_custom_alias=custom_alias is not None,
            title=title,
            description=description,
            expires_at=expires_at,
            password_hash=password_hash,
            owner_id=owner_id
        )
        db.add(link)
        try:
            db.commit()
        except IntegrityError:
            # Код заняли между проверкой и вставкой
            db.rollback()
            if custom_alias is not None:
                raise LinkError(ErrorCode.ALIAS_TAKEN)
            attempts_left -= 1
            logger.info("Коллизия кода %s при вставке, повтор", short_code)
            if attempts_left <= 0:
                raise LinkError(ErrorCode.GENERATION_EXHAUSTED)
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Ошибка хранилища при создании ссылки: %s", e)
            raise LinkError(ErrorCode.PERSISTENCE_FAILURE) from e

        db.refresh(link)
        logger.info("Создана ссылка %s -> %s", link.short_code, link.original_url)
        return link
