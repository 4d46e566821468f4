from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    ALIAS_TAKEN = "ALIAS_TAKEN"
    GENERATION_EXHAUSTED = "GENERATION_EXHAUSTED"
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    EXPIRED = "EXPIRED"
    PASSWORD_REQUIRED = "PASSWORD_REQUIRED"
    PASSWORD_INVALID = "PASSWORD_INVALID"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"


HTTP_STATUS = {
    ErrorCode.VALIDATION: 400,
    ErrorCode.ALIAS_TAKEN: 409,
    ErrorCode.GENERATION_EXHAUSTED: 503,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INACTIVE: 410,
    ErrorCode.EXPIRED: 410,
    ErrorCode.PASSWORD_REQUIRED: 401,
    ErrorCode.PASSWORD_INVALID: 401,
    ErrorCode.PERSISTENCE_FAILURE: 503,
}

DEFAULT_DETAILS = {
    ErrorCode.VALIDATION: "Некорректные данные",
    ErrorCode.ALIAS_TAKEN: "Пользовательский алиас уже занят",
    ErrorCode.GENERATION_EXHAUSTED: "Не удалось сгенерировать уникальный код, повторите попытку",
    ErrorCode.NOT_FOUND: "Ссылка не найдена",
    ErrorCode.INACTIVE: "Ссылка отключена",
    ErrorCode.EXPIRED: "Срок действия ссылки истек",
    ErrorCode.PASSWORD_REQUIRED: "Для перехода по ссылке требуется пароль",
    ErrorCode.PASSWORD_INVALID: "Неверный пароль",
    ErrorCode.PERSISTENCE_FAILURE: "Хранилище временно недоступно",
}


class LinkError(Exception):
    """Ошибка ядра сервиса с типизированным кодом"""

    def __init__(self, code: ErrorCode, detail: Optional[str] = None):
        self.code = code
        self.detail = detail or DEFAULT_DETAILS[code]
        super().__init__(self.detail)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.code]
