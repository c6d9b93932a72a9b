"""Response envelope shared by every endpoint.

Success: ``{"status": "success", "data": ..., "message": ...}``
Errors are produced by ``CaseGateException.to_dict`` with the same outer shape.
"""

from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Wire models use camelCase, matching the token claims and the frontend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    status: Literal["success", "error"] = "success"
    message: Optional[str] = None
    data: Optional[T] = None


def success(data=None, message: Optional[str] = None) -> dict:
    return {"status": "success", "message": message, "data": data}
