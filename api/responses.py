"""Standard response models for API documentation.

Provides Pydantic models that appear in OpenAPI/Swagger docs
for consistent response schemas.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CamelModel(BaseModel):
    """Request/response schema using camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorContent(BaseModel):
    """Error information container."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Any] = Field(
        default=None,
        description="Additional error context",
    )


class ErrorResponse(BaseModel):
    """Standard error response format.

    Example:
        {
            "success": false,
            "error": {
                "code": "PLATFORM_NOT_CONNECTED",
                "message": "Please connect to: instagram",
                "details": {"missingPlatforms": ["instagram"]}
            }
        }
    """

    success: bool = Field(default=False)
    error: ErrorContent = Field(description="Error information")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": False,
                    "error": {
                        "code": "PREMIUM_REQUIRED",
                        "message": "Premium subscription required for posting features",
                    },
                },
                {
                    "success": False,
                    "error": {
                        "code": "INVALID_CONTENT",
                        "message": "Content validation failed for some platforms",
                        "details": {
                            "errors": [
                                {
                                    "platform": "twitter",
                                    "field": "content",
                                    "message": "Content exceeds maximum length of 280 characters",
                                }
                            ]
                        },
                    },
                },
            ]
        }
    }


class Pagination(BaseModel):
    """Offset pagination metadata."""

    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(ge=0, description="Total number of matching items")
    limit: int = Field(ge=1, le=100, description="Items per page")
    offset: int = Field(ge=0, description="Index of the first returned item")
    has_more: bool = Field(alias="hasMore", description="More items follow this page")

    @classmethod
    def create(cls, total: int, limit: int, offset: int) -> "Pagination":
        return cls(total=total, limit=limit, offset=offset, has_more=offset + limit < total)


class DataResponse(BaseModel, Generic[T]):
    """Success envelope carrying a payload."""

    success: bool = Field(default=True)
    data: T
    message: Optional[str] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """Success envelope for a page of items.

    Use with a type parameter to specify the item type:
        PaginatedResponse[PostResponse]
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(default=True)
    data: list[T] = Field(description="Items for the current page")
    pagination: Pagination


class SuccessResponse(BaseModel):
    """Simple success response for operations without data.

    Use for DELETE or other operations that don't return content.
    """

    success: bool = Field(default=True, description="Operation succeeded")
    message: Optional[str] = Field(
        default=None,
        description="Optional success message",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"success": True},
                {"success": True, "message": "Disconnected from twitter"},
            ]
        }
    }
