# app/schemas/base_schema.py

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire schemas: camelCase on the wire, snake_case in Python.

    Dump with `model_dump(mode='json', by_alias=True)` before emitting.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
