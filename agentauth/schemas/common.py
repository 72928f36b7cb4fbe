"""
Common schema pieces - the camelCase base model and the error body.

The public API speaks camelCase JSON ("userId", "connectUrl") while the
Python side stays snake_case. Request bodies accept either spelling.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """
    Body of every error response.

    Example:
    {
        "error": "invalid_api_key",
        "message": "The API key provided is invalid or inactive."
    }
    """
    error: str
    message: str
