"""Common schemas used across the application."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API payloads: snake_case in Python, camelCase on the wire.

    Either spelling is accepted on input.
    """
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool
