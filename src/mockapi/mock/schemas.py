"""
mockapi Admin API Schemas

Request models for creating and updating mocks through the admin API.
Field names use the camelCase wire form stored in mocks.json.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


HTTP_METHODS = ('GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'HEAD', 'OPTIONS')

ResponseBody = Union[Dict[str, Any], List[Any], str, int, float, bool]


def _check_method(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    upper = value.upper()
    if upper not in HTTP_METHODS:
        raise ValueError(f"method must be one of {', '.join(HTTP_METHODS)}")
    return upper


def _check_route(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.startswith('/'):
        raise ValueError("route must start with /")
    return value


class MockCreate(BaseModel):
    """Payload for POST /configure-mock."""

    model_config = ConfigDict(extra='forbid')

    name: str = Field(min_length=1, max_length=100)
    route: str = Field(min_length=1, max_length=500)
    method: str
    responseBody: ResponseBody
    urlParams: Dict[str, Any] = Field(default_factory=dict)
    bodyParams: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    conditions: Dict[str, Any] = Field(default_factory=dict)
    statusCode: int = Field(200, ge=100, le=599)
    contentType: str = "application/json"
    enabled: bool = True

    @field_validator('method')
    @classmethod
    def validate_method(cls, value):
        return _check_method(value)

    @field_validator('route')
    @classmethod
    def validate_route(cls, value):
        return _check_route(value)


class MockUpdate(BaseModel):
    """Payload for PUT /configure-mock/{id}; omitted fields keep their value."""

    model_config = ConfigDict(extra='forbid')

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    route: Optional[str] = Field(None, min_length=1, max_length=500)
    method: Optional[str] = None
    responseBody: Optional[ResponseBody] = None
    urlParams: Optional[Dict[str, Any]] = None
    bodyParams: Optional[Dict[str, Any]] = None
    headers: Optional[Dict[str, Any]] = None
    conditions: Optional[Dict[str, Any]] = None
    statusCode: Optional[int] = Field(None, ge=100, le=599)
    contentType: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator('method')
    @classmethod
    def validate_method(cls, value):
        return _check_method(value)

    @field_validator('route')
    @classmethod
    def validate_route(cls, value):
        return _check_route(value)
