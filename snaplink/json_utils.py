import orjson
from typing import Any, Union

def dumps(obj: Any, **kwargs) -> str:
    """Сериализует объект в JSON-строку с поддержкой datetime."""
    options = orjson.OPT_NON_STR_KEYS
    if kwargs.get('indent'):
        options |= orjson.OPT_INDENT_2
    return orjson.dumps(obj, option=options, default=str).decode('utf-8')

def loads(s: Union[str, bytes], **kwargs) -> Any:
    """Десериализует JSON-строку в объект Python."""
    if isinstance(s, str):
        s = s.encode('utf-8')
    return orjson.loads(s)

def loads_object(s: Union[str, bytes]) -> dict:
    """Разбирает JSON-объект, для любого другого содержимого возвращает пустой словарь."""
    try:
        data = loads(s)
    except orjson.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}
