from fastapi import Depends, Header, HTTPException, Query, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from typing import Optional

from snaplink.database import get_db
from snaplink.geo import GeoLocator, NullGeoLocator
from snaplink.models import User, Link
from snaplink.resolver import check_link_password
from snaplink.schemas import TokenData
from snaplink.config import settings
from snaplink.utils import extract_client_info

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
):
    """Получает текущего пользователя по токену, без токена - анонимный вызов"""
    if token is None:
        return None

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Недействительные учетные данные",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        username = payload.get("sub")
        user_id = payload.get("user_id")

        if username is None or user_id is None:
            raise credentials_exception

        token_data = TokenData(username=username, user_id=user_id)
    except JWTError:
        raise credentials_exception

    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        raise credentials_exception

    return user

async def get_current_active_user(current_user: User = Depends(get_current_user)):
    """Проверяет, что текущий пользователь активен"""
    if current_user is None:
        return None

    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Аккаунт неактивен"
        )
    return current_user

async def require_user(current_user: User = Depends(get_current_active_user)):
    """Требует аутентифицированного пользователя"""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Требуется аутентификация",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user

async def require_admin(current_user: User = Depends(require_user)):
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Требуются права администратора"
        )
    return current_user

def find_link_or_404(db: Session, short_code: str) -> Link:
    link = db.query(Link).filter(Link.short_code == short_code).first()
    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ссылка не найдена"
        )
    return link

def can_manage_link(user: Optional[User], link: Link) -> bool:
    return user is not None and (user.role == "admin" or link.owner_id == user.id)

async def get_link_password(
    password: Optional[str] = Query(None),
    x_link_password: Optional[str] = Header(None)
) -> Optional[str]:
    """Пароль ссылки из параметра password или заголовка X-Link-Password"""
    return password or x_link_password

def get_link_owner_or_admin(
    short_code: str,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_db)
):
    """Проверяет, что текущий пользователь является владельцем ссылки или администратором"""
    link = find_link_or_404(db, short_code)

    if not can_manage_link(current_user, link):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Нет доступа к этой ссылке"
        )

    return link

def get_link_for_viewer(
    short_code: str,
    current_user: Optional[User] = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    supplied_password: Optional[str] = Depends(get_link_password)
):
    """Ссылку с паролем видят владелец, администратор и знающие пароль"""
    link = find_link_or_404(db, short_code)

    if not can_manage_link(current_user, link):
        check_link_password(link, supplied_password)

    return link

def get_link_for_stats(
    short_code: str,
    current_user: Optional[User] = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    supplied_password: Optional[str] = Depends(get_link_password)
):
    """Статистику анонимной ссылки видят все (с паролем - знающие его), остальных - владелец и администратор"""
    link = find_link_or_404(db, short_code)

    if link.owner_id is None:
        if not can_manage_link(current_user, link):
            check_link_password(link, supplied_password)
        return link

    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Требуется аутентификация",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not can_manage_link(current_user, link):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Нет доступа к этой ссылке"
        )

    return link

async def get_client_info(request: Request):
    """Получает информацию о клиенте из запроса"""
    return extract_client_info(request)

async def get_geolocator(request: Request) -> GeoLocator:
    """Провайдер геолокации, созданный при запуске приложения"""
    return getattr(request.app.state, "geolocator", None) or NullGeoLocator()
