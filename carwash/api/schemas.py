"""
Shared Pydantic base for request/response bodies.

The booking frontend speaks camelCase JSON; models declare snake_case
fields and accept either spelling on input.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
