import logging
import math

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional

from snaplink.analytics import summarize_link
from snaplink.database import get_db
from snaplink.dependencies import (
    get_current_active_user, get_link_owner_or_admin, get_link_for_stats, get_link_for_viewer,
    get_link_password, get_client_info, get_geolocator, require_user
)
from snaplink.errors import ErrorCode, LinkError
from snaplink.geo import GeoLocator
from snaplink.models import Link, User
from snaplink.resolver import resolve_link
from snaplink.schemas import LinkCreate, LinkResponse, LinkUpdate, LinkListResponse, LinkAnalytics
from snaplink.shortener import create_link
from snaplink.tracking import record_click
from snaplink.utils import build_short_url, link_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["links"])


def to_link_response(link: Link) -> LinkResponse:
    return LinkResponse(
        short_code=link.short_code,
        original_url=link.original_url,
        short_url=build_short_url(link.short_code),
        title=link.title,
        description=link.description,
        is_custom_alias=link.is_custom_alias,
        is_active=link.is_active,
        password_protected=link.password_hash is not None,
        status=link_status(link),
        click_count=link.click_count,
        unique_click_count=link.unique_click_count,
        created_at=link.created_at,
        expires_at=link.expires_at,
        last_accessed=link.last_accessed
    )


def commit_changes(db: Session, link: Link) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Не удалось сохранить ссылку %s: %s", link.short_code, e)
        raise LinkError(ErrorCode.PERSISTENCE_FAILURE) from e
    db.refresh(link)


# Создание короткой ссылки
@router.post("/links/shorten", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
def create_short_link(
    link_data: LinkCreate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_active_user)
):
    """Создает короткую ссылку"""
    link = create_link(
        db,
        link_data.original_url,
        custom_alias=link_data.custom_alias,
        expires_at=link_data.expires_at,
        password=link_data.password,
        owner_id=current_user.id if current_user else None,
        title=link_data.title,
        description=link_data.description
    )
    return to_link_response(link)

# Ссылки текущего пользователя
@router.get("/links", response_model=LinkListResponse)
def list_my_links(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Возвращает ссылки пользователя постранично, новые первыми"""
    query = db.query(Link).filter(Link.owner_id == current_user.id)
    if not include_inactive:
        query = query.filter(Link.is_active.is_(True))

    total = query.count()
    links = query.order_by(Link.created_at.desc(), Link.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return LinkListResponse(
        links=[to_link_response(link) for link in links],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit)
    )

# Получение информации о ссылке
@router.get("/links/{short_code}", response_model=LinkResponse)
def get_link_info(link: Link = Depends(get_link_for_viewer)):
    """Получает информацию о короткой ссылке"""
    return to_link_response(link)

# Получение статистики по ссылке
@router.get("/links/{short_code}/stats", response_model=LinkAnalytics)
def get_link_stats(
    timeframe: Optional[str] = None,
    link: Link = Depends(get_link_for_stats),
    db: Session = Depends(get_db)
):
    """Получает статистику переходов по короткой ссылке за период"""
    return summarize_link(db, link, timeframe)

# Обновление ссылки
@router.put("/links/{short_code}", response_model=LinkResponse)
def update_link(
    link_data: LinkUpdate,
    link: Link = Depends(get_link_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Обновляет адрес назначения и описание ссылки"""
    for field in ("original_url", "title", "description"):
        value = getattr(link_data, field)
        if value is not None:
            setattr(link, field, value)

    commit_changes(db, link)
    return to_link_response(link)

# Включение и отключение ссылки
@router.patch("/links/{short_code}/toggle", response_model=LinkResponse)
def toggle_link(
    link: Link = Depends(get_link_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Переключает активность ссылки"""
    link.is_active = not link.is_active
    commit_changes(db, link)
    logger.info("Ссылка %s %s", link.short_code, "включена" if link.is_active else "отключена")
    return to_link_response(link)

# Удаление ссылки
@router.delete("/links/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
def delete_link(
    link: Link = Depends(get_link_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Мягко удаляет ссылку: код остается занятым, ссылка отключается"""
    link.is_active = False
    commit_changes(db, link)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# Перенаправление по короткой ссылке
@router.get("/{short_code}", include_in_schema=False)
def redirect_to_url(
    short_code: str,
    background_tasks: BackgroundTasks,
    password: Optional[str] = Depends(get_link_password),
    db: Session = Depends(get_db),
    client_info: dict = Depends(get_client_info),
    geolocator: GeoLocator = Depends(get_geolocator)
):
    """Перенаправляет по короткой ссылке, клик записывается после ответа"""
    link = resolve_link(db, short_code, password)

    background_tasks.add_task(record_click, link.id, client_info, geolocator)

    return RedirectResponse(url=link.original_url)
