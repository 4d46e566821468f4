import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snaplink.errors import ErrorCode, LinkError
from snaplink.models import Link
from snaplink.utils import is_expired, is_valid_short_code, verify_password

logger = logging.getLogger(__name__)


def get_link_by_code(db: Session, short_code: str) -> Optional[Link]:
    try:
        return db.query(Link).filter(Link.short_code == short_code).first()
    except SQLAlchemyError as e:
        logger.error("Ошибка хранилища при поиске %s: %s", short_code, e)
        raise LinkError(ErrorCode.PERSISTENCE_FAILURE) from e


def check_link_password(link: Link, supplied_password: Optional[str]) -> None:
    if not link.password_hash:
        return
    if not supplied_password:
        raise LinkError(ErrorCode.PASSWORD_REQUIRED)
    if not verify_password(supplied_password, link.password_hash):
        raise LinkError(ErrorCode.PASSWORD_INVALID)


def resolve_link(
    db: Session,
    short_code: str,
    supplied_password: Optional[str] = None,
    now: Optional[datetime] = None
) -> Link:
    """Проверяет доступность ссылки и возвращает ее.

    Проверки идут по порядку: формат кода, существование, активность,
    срок действия, пароль. Первая неудачная проверка определяет ошибку.
    """
    if not is_valid_short_code(short_code):
        raise LinkError(ErrorCode.VALIDATION, "Некорректный короткий код")

    link = get_link_by_code(db, short_code)
    if link is None:
        raise LinkError(ErrorCode.NOT_FOUND)

    if not link.is_active:
        raise LinkError(ErrorCode.INACTIVE)

    if is_expired(link.expires_at, now):
        raise LinkError(ErrorCode.EXPIRED)

    check_link_password(link, supplied_password)

    return link
