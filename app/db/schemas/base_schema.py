# app/db/schemas/base_schema.py
from datetime import time
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class CamelModel(BaseModel):
    """
    Wire models use camelCase keys; Python code uses snake_case attributes.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


__all__ = ["CamelModel", "HHMM_PATTERN", "format_hhmm"]
