"""Агрегаты по кликам для отчетов.

Отчеты только читают данные и допускают отставание от последних записей.
Клики ботов не входят в итоги и группировки, их число идет отдельно.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from snaplink.models import Click, Link
from snaplink.tracking import DEVICE_TYPES
from snaplink.utils import build_short_url


class Timeframe(str, Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"
    ALL = "all"


TIMEFRAME_DELTAS = {
    Timeframe.LAST_24H: timedelta(hours=24),
    Timeframe.LAST_7D: timedelta(days=7),
    Timeframe.LAST_30D: timedelta(days=30),
    Timeframe.LAST_90D: timedelta(days=90),
    Timeframe.ALL: None,
}

LINK_DEFAULT_TIMEFRAME = Timeframe.LAST_7D
OWNER_DEFAULT_TIMEFRAME = Timeframe.LAST_30D

RECENT_CLICKS_LIMIT = 10
TOP_LINKS_LIMIT = 5


def parse_timeframe(value: Optional[str], default: Timeframe) -> Timeframe:
    """Неизвестные значения заменяются значением по умолчанию"""
    try:
        return Timeframe(value)
    except ValueError:
        return default


def timeframe_start(timeframe: Timeframe, now: Optional[datetime] = None) -> Optional[datetime]:
    delta = TIMEFRAME_DELTAS[timeframe]
    if delta is None:
        return None
    return (now or datetime.now(timezone.utc)) - delta


def _scope_filters(scope, since: Optional[datetime], now: datetime) -> list:
    filters = [scope, Click.timestamp <= now]
    if since is not None:
        filters.append(Click.timestamp >= since)
    return filters


def _grouped(db: Session, column, filters: list, fallback: str) -> dict:
    rows = db.query(column, func.count(Click.id)).filter(*filters).group_by(column).all()
    counts = {}
    for key, count in rows:
        key = str(key) if key else fallback
        counts[key] = counts.get(key, 0) + count
    return counts


def _build_report(db: Session, scope, timeframe: Timeframe, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    base = _scope_filters(scope, timeframe_start(timeframe, now), now)
    human = base + [Click.is_bot.is_(False)]

    total_clicks, unique_visitors = db.query(
        func.count(Click.id), func.count(distinct(Click.ip_address))
    ).filter(*human).one()
    bot_clicks = db.query(func.count(Click.id)).filter(*base, Click.is_bot.is_(True)).scalar()

    by_device = {device: 0 for device in DEVICE_TYPES}
    by_device.update(_grouped(db, Click.device_type, human, "unknown"))

    return {
        "timeframe": timeframe.value,
        "total_clicks": total_clicks or 0,
        "unique_visitors": unique_visitors or 0,
        "bot_clicks": bot_clicks or 0,
        "clicks_by_date": dict(sorted(_grouped(db, func.date(Click.timestamp), human, "unknown").items())),
        "clicks_by_country": _grouped(db, Click.country, human, "Unknown"),
        "clicks_by_city": _grouped(db, Click.city, human, "Unknown"),
        "clicks_by_referrer": _grouped(db, Click.referer, human, "Direct"),
        "clicks_by_device": by_device,
    }


def summarize_link(db: Session, link: Link, timeframe: Optional[str] = None,
                   now: Optional[datetime] = None) -> dict:
    """Отчет по одной ссылке"""
    timeframe = parse_timeframe(timeframe, LINK_DEFAULT_TIMEFRAME)
    report = _build_report(db, Click.link_id == link.id, timeframe, now)

    recent = db.query(Click).filter(
        Click.link_id == link.id
    ).order_by(Click.timestamp.desc(), Click.id.desc()).limit(RECENT_CLICKS_LIMIT).all()

    report.update({
        "short_code": link.short_code,
        "original_url": link.original_url,
        "created_at": link.created_at,
        "click_count": link.click_count,
        "unique_click_count": link.unique_click_count,
        "last_accessed": link.last_accessed,
        "recent_clicks": recent,
    })
    return report


def summarize_owner(db: Session, owner_id: int, timeframe: Optional[str] = None,
                    now: Optional[datetime] = None) -> dict:
    """Отчет по всем ссылкам владельца"""
    timeframe = parse_timeframe(timeframe, OWNER_DEFAULT_TIMEFRAME)
    owned = select(Link.id).where(Link.owner_id == owner_id)
    report = _build_report(db, Click.link_id.in_(owned), timeframe, now)

    now = now or datetime.now(timezone.utc)
    filters = _scope_filters(Link.owner_id == owner_id, timeframe_start(timeframe, now), now)
    clicks = func.count(Click.id).label("clicks")
    top = db.query(Link.short_code, Link.original_url, clicks).join(
        Click, Click.link_id == Link.id
    ).filter(*filters, Click.is_bot.is_(False)).group_by(
        Link.id, Link.short_code, Link.original_url
    ).order_by(clicks.desc()).limit(TOP_LINKS_LIMIT).all()

    report.update({
        "total_links": db.query(func.count(Link.id)).filter(Link.owner_id == owner_id).scalar() or 0,
        "top_links": [
            {
                "short_code": short_code,
                "original_url": original_url,
                "short_url": build_short_url(short_code),
                "clicks": count,
            }
            for short_code, original_url, count in top
        ],
    })
    return report


def summarize_system(db: Session, timeframe: Optional[str] = None,
                     now: Optional[datetime] = None) -> dict:
    """Отчет по всему сервису"""
    timeframe = parse_timeframe(timeframe, OWNER_DEFAULT_TIMEFRAME)
    report = _build_report(db, Click.id.isnot(None), timeframe, now)

    now = now or datetime.now(timezone.utc)
    since = timeframe_start(timeframe, now)
    clicked = db.query(func.count(distinct(Click.link_id))).filter(*_scope_filters(Click.id.isnot(None), since, now))

    report.update({
        "total_links": db.query(func.count(Link.id)).scalar() or 0,
        "active_links": db.query(func.count(Link.id)).filter(Link.is_active.is_(True)).scalar() or 0,
        "links_clicked": clicked.scalar() or 0,
    })
    return report
