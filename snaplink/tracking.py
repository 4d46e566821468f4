"""Запись кликов по коротким ссылкам.

Вызывается фоновой задачей уже после отправки редиректа, поэтому любые
ошибки здесь логируются и отбрасываются, посетитель их не видит.
Счетчики на ссылке - кеш агрегатов по кликам; расхождение с реальным
числом событий допустимо.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snaplink import cache
from snaplink.config import settings
from snaplink.database import SessionLocal
from snaplink.geo import GeoLocator, safe_lookup
from snaplink.json_utils import dumps
from snaplink.models import Click, Link

logger = logging.getLogger(__name__)

DEVICE_TYPES = ("desktop", "mobile", "tablet", "unknown")

TABLET_RE = re.compile(r"ipad|tablet|kindle|silk/|playbook|android(?!.*mobi)", re.IGNORECASE)
MOBILE_RE = re.compile(r"mobi|iphone|ipod|android|blackberry|opera mini|windows phone|iemobile", re.IGNORECASE)
DESKTOP_RE = re.compile(r"windows nt|macintosh|mac os x|x11|linux|cros", re.IGNORECASE)
BOT_RE = re.compile(
    r"bot\b|bot/|crawl|spider|slurp|facebookexternalhit|headlesschrome|lighthouse"
    r"|curl/|wget/|python-requests|go-http-client|apache-httpclient",
    re.IGNORECASE
)


def classify_device(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "unknown"
    if TABLET_RE.search(user_agent):
        return "tablet"
    if MOBILE_RE.search(user_agent):
        return "mobile"
    if DESKTOP_RE.search(user_agent):
        return "desktop"
    return "unknown"


def is_bot(user_agent: Optional[str]) -> bool:
    if not user_agent:
        return False
    return BOT_RE.search(user_agent) is not None


def seen_recently(db: Session, link_id: int, ip_address: str, since: datetime) -> bool:
    return db.query(Click.id).filter(
        Click.link_id == link_id,
        Click.ip_address == ip_address,
        Click.timestamp >= since
    ).first() is not None


def is_unique_visitor(db: Session, link_id: int, ip_address: Optional[str], at: datetime) -> bool:
    """Был ли этот IP на ссылке за окно уникальности (без гарантий при гонках)"""
    if not ip_address:
        return False
    try:
        return cache.mark_visitor(link_id, ip_address)
    except redis.RedisError as e:
        logger.warning("Redis недоступен, уникальность по истории кликов: %s", e)
    since = at - timedelta(seconds=settings.UNIQUE_VISITOR_WINDOW)
    return not seen_recently(db, link_id, ip_address, since)


def record_click(
    link_id: int,
    client_info: dict,
    geolocator: Optional[GeoLocator] = None,
    session_factory: Optional[Callable[[], Session]] = None
) -> bool:
    """Сохраняет клик и увеличивает счетчики ссылки.

    Возвращает False, если клик пришлось отбросить из-за ошибки хранилища.
    """
    session_factory = session_factory or SessionLocal
    ip_address = client_info.get("ip_address")
    user_agent = client_info.get("user_agent")
    timestamp = client_info.get("timestamp") or datetime.now(timezone.utc)

    location = safe_lookup(geolocator, ip_address)

    db = session_factory()
    try:
        unique = is_unique_visitor(db, link_id, ip_address, timestamp)

        click = Click(
            link_id=link_id,
            timestamp=timestamp,
            ip_address=ip_address,
            user_agent=user_agent,
            referer=client_info.get("referer"),
            country=location.country,
            city=location.city,
            region=location.region,
            device_type=classify_device(user_agent),
            is_bot=is_bot(user_agent)
        )
        db.add(click)

        counters = {
            Link.click_count: Link.click_count + 1,
            Link.last_accessed: timestamp,
        }
        if unique:
            counters[Link.unique_click_count] = Link.unique_click_count + 1
        db.query(Link).filter(Link.id == link_id).update(counters, synchronize_session=False)

        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Клик по ссылке %s потерян: %s; данные: %s", link_id, e, dumps(client_info))
        return False
    finally:
        db.close()
