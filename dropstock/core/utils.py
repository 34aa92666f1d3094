"""
Utility functions for the application.
"""
import math

from datetime import datetime, timezone
from typing import Any, Callable, List, Type, TypeVar

from pydantic import BaseModel

T = TypeVar('T', bound=BaseModel)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Timezone-aware current time in UTC. The default clock for every service."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def model_to_schema(db_model: Any, schema_class: Type[T]) -> T:
    """
    Convert a SQLAlchemy model instance to a Pydantic schema instance.

    Args:
        db_model: SQLAlchemy model instance
        schema_class: Pydantic schema class

    Returns:
        Instance of the Pydantic schema
    """
    return schema_class.model_validate(db_model, from_attributes=True)


def models_to_schemas(db_models: List[Any], schema_class: Type[T]) -> List[T]:
    return [model_to_schema(model, schema_class) for model in db_models]


def total_pages(total_items: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total_items / page_size)


def success_response(data: Any = None, message: str = "OK") -> dict:
    """Wrap a payload in the API's success envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    return {"success": True, "message": message, "data": data}
