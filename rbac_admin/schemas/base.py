"""
Base Pydantic Schemas
Common schemas and base classes for request/response models
"""

import re
from datetime import datetime
from typing import Optional, Any, Dict, List, Generic, TypeVar
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum

T = TypeVar("T")

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields"""
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class BaseSchema(BaseModel):
    """Base schema with common configuration"""
    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
        use_enum_values=True
    )


class BaseResponseSchema(BaseSchema, TimestampMixin):
    """Base schema for API responses"""
    id: UUID = Field(..., description="Unique identifier")


class SortOrder(str, Enum):
    """Sort order enumeration"""
    ASC = "asc"
    DESC = "desc"


class ApiResponse(BaseModel, Generic[T]):
    """
    Uniform response envelope.

    ``code == 0`` is the only success signal; failures carry the numeric
    error code, which matches the HTTP status.
    """
    code: int = Field(0, description="0 on success, error code otherwise")
    message: str = Field("success", description="Human-readable outcome")
    data: Optional[T] = Field(None, description="Payload on success")

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(code=0, message=message, data=data)

    @classmethod
    def fail(cls, code: int, message: str, data: Any = None) -> "ApiResponse":
        return cls(code=code, message=message, data=data)


class PaginatedResponse(BaseModel, Generic[T]):
    """Paginated response wrapper"""
    items: List[T] = Field(..., description="List of items")
    total: int = Field(..., description="Total number of items")
    skip: int = Field(..., description="Number of items skipped")
    limit: int = Field(..., description="Maximum number of items returned")
    has_next: bool = Field(..., description="Whether there are more items")
    has_prev: bool = Field(..., description="Whether there are previous items")

    @classmethod
    def create(
        cls,
        items: List[Any],
        total: int,
        skip: int,
        limit: int
    ) -> "PaginatedResponse":
        """
        Create paginated response

        Args:
            items: List of items
            total: Total number of items
            skip: Number of items skipped
            limit: Maximum number of items returned
        """
        return cls(
            items=items,
            total=total,
            skip=skip,
            limit=limit,
            has_next=skip + len(items) < total,
            has_prev=skip > 0
        )


class HealthStatus(str, Enum):
    """Health status enumeration"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthCheck(BaseModel):
    """Health check response"""
    status: HealthStatus = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(..., description="Check timestamp")
    checks: Dict[str, Any] = Field(default_factory=dict, description="Individual health checks")


# Validation helpers
def validate_non_empty_string(v: Any) -> str:
    """Validate non-empty string"""
    if not isinstance(v, str):
        raise ValueError("Must be a string")
    if not v.strip():
        raise ValueError("String cannot be empty")
    return v.strip()


def validate_email(v: Any) -> str:
    """Validate email format"""
    if not isinstance(v, str):
        raise ValueError("Email must be a string")

    if not EMAIL_PATTERN.match(v.strip()):
        raise ValueError("Invalid email format")

    return v.lower().strip()


def validate_password_strength(v: str) -> str:
    """At least 8 characters with upper, lower and a digit"""
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v
