from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from snaplink.analytics import summarize_owner, summarize_system
from snaplink.database import get_db
from snaplink.dependencies import require_user, require_admin
from snaplink.models import User
from snaplink.schemas import OwnerAnalytics, SystemAnalytics

router = APIRouter(prefix="/analytics", tags=["analytics"])

@router.get("/user", response_model=OwnerAnalytics)
def get_user_analytics(
    timeframe: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user)
):
    """Сводная статистика по всем ссылкам пользователя"""
    return summarize_owner(db, current_user.id, timeframe)

@router.get("/system", response_model=SystemAnalytics)
def get_system_analytics(
    timeframe: Optional[str] = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin)
):
    return summarize_system(db, timeframe)
