"""Grant management schemas."""

from typing import List

from .common import CamelModel


class GrantFlagsRequest(CamelModel):
    can_view: bool = True
    can_create: bool = False
    can_edit: bool = False


class JurisdictionGrantResponse(CamelModel):
    user_id: int
    jurisdiction_id: int
    can_view: bool
    can_create: bool
    can_edit: bool


class PersonGrantResponse(CamelModel):
    user_id: int
    person_id: int
    jurisdiction_id: int
    can_view: bool
    can_create: bool
    can_edit: bool


class UserGrantsResponse(CamelModel):
    user_id: int
    jurisdictions: List[JurisdictionGrantResponse] = []
    persons: List[PersonGrantResponse] = []
