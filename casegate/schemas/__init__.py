"""Pydantic schemas for API validation."""

from .common import ApiResponse, CamelModel, success

__all__ = ["ApiResponse", "CamelModel", "success"]
