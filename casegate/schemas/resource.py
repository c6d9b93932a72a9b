"""Jurisdiction and person schemas."""

from typing import Annotated, Optional

from pydantic import StringConstraints

from .common import CamelModel

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class JurisdictionCreate(CamelModel):
    name: Name


class JurisdictionUpdate(CamelModel):
    name: Name


class JurisdictionResponse(CamelModel):
    id: int
    name: str
    created_by: Optional[int] = None


class PersonCreate(CamelModel):
    full_name: Name


class PersonUpdate(CamelModel):
    full_name: Name


class PersonResponse(CamelModel):
    id: int
    jurisdiction_id: int
    full_name: str
    created_by: Optional[int] = None
