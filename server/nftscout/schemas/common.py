"""Shared response models for endpoints that return simple JSON dicts."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    details: str = ""


class CacheClearResponse(BaseModel):
    message: str
