from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime, timezone
import validators

from snaplink.config import settings


def validate_http_url(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v.lower().startswith(("http://", "https://")) or not validators.url(v):
        raise ValueError("Недействительный URL: нужен адрес с http:// или https://")
    return v


class TokenData(BaseModel):
    username: Optional[str] = None
    user_id: Optional[int] = None

class LinkBase(BaseModel):
    original_url: str = Field(..., description="Оригинальный URL для сокращения")

    @field_validator('original_url')
    def validate_url(cls, v):
        return validate_http_url(v)

class LinkCreate(LinkBase):
    custom_alias: Optional[str] = Field(None, description="Пользовательский алиас для короткой ссылки")
    expires_at: Optional[datetime] = Field(None, description="Время истечения срока действия ссылки")
    password: Optional[str] = Field(None, min_length=settings.MIN_LINK_PASSWORD_LENGTH,
                                    description="Пароль для перехода по ссылке")
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator('expires_at')
    def validate_expires_at(cls, v):
        if v is None:
            return v
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        if v <= datetime.now(timezone.utc):
            raise ValueError("Срок действия должен быть в будущем")
        return v

class LinkUpdate(BaseModel):
    original_url: Optional[str] = Field(None, description="Новый оригинальный URL")
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator('original_url')
    def validate_url(cls, v):
        return validate_http_url(v)

class ClickInfo(BaseModel):
    timestamp: datetime
    referer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    device_type: str
    is_bot: bool

    model_config = ConfigDict(from_attributes=True)

class LinkResponse(BaseModel):
    short_code: str
    original_url: str
    short_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    is_custom_alias: bool = False
    is_active: bool = True
    password_protected: bool = False
    status: str = "active"
    click_count: int = 0
    unique_click_count: int = 0
    created_at: datetime
    expires_at: Optional[datetime] = None
    last_accessed: Optional[datetime] = None

class LinkListResponse(BaseModel):
    links: List[LinkResponse]
    page: int
    limit: int
    total: int
    pages: int

class AnalyticsReport(BaseModel):
    timeframe: str
    total_clicks: int
    unique_visitors: int
    bot_clicks: int
    clicks_by_date: Dict[str, int]
    clicks_by_country: Dict[str, int]
    clicks_by_city: Dict[str, int]
    clicks_by_referrer: Dict[str, int]
    clicks_by_device: Dict[str, int]

class LinkAnalytics(AnalyticsReport):
    short_code: str
    original_url: str
    created_at: datetime
    click_count: int
    unique_click_count: int
    last_accessed: Optional[datetime] = None
    recent_clicks: List[ClickInfo] = []

class TopLink(BaseModel):
    short_code: str
    original_url: str
    short_url: str
    clicks: int

class OwnerAnalytics(AnalyticsReport):
    total_links: int
    top_links: List[TopLink] = []

class SystemAnalytics(AnalyticsReport):
    total_links: int
    active_links: int
    links_clicked: int
