"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data
- Response models for API responses

Request fields are optional at the schema level so that a missing field is
reported by the auth/messaging layer as an InvalidInputError (400) with a
readable message, the same way an empty string is.
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Pydantic Request Models
# =============================================================================

class SignupRequest(BaseModel):
    """Body of POST /signup."""
    phone: Optional[str] = Field(None, description="Phone number, used as the login identifier")
    password: Optional[str] = Field(None, description="Plain password, hashed before storage")
    invite_code: Optional[str] = Field(None, description="Shared invite code")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"phone": "+15550001", "password": "pw1", "invite_code": "friends-only-2025"}
            ]
        }
    }


class LoginRequest(BaseModel):
    """Body of POST /login."""
    phone: Optional[str] = Field(None, description="Registered phone number")
    password: Optional[str] = Field(None, description="Plain password")


class SendMessageRequest(BaseModel):
    """Body of POST /messages."""
    to_user: Optional[int] = Field(None, description="Recipient user id")
    body: Optional[str] = Field(None, description="Message text")
    anonymous: Optional[bool] = Field(False, description="Hide the sender from the recipient")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"to_user": 1, "body": "hi", "anonymous": True}
            ]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class UserOut(BaseModel):
    """Public identity of a user: id and phone, never the hash."""
    id: int
    phone: str

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Response for signup and login."""
    token: str = Field(..., description="Bearer token")
    user: UserOut


class UserSummary(BaseModel):
    """Entry of GET /users."""
    id: int
    phone: str
    masked: str = Field(..., description="Display form of the phone number")


class MessageCreatedResponse(BaseModel):
    """Response for POST /messages."""
    id: int


class MessageView(BaseModel):
    """
    Message as seen by its recipient.
    from_user is None whenever the message is anonymous.
    """
    id: int
    from_user: Optional[int] = Field(
        None,
        alias="from",
        serialization_alias="from",
        description="Sender id, null for anonymous messages"
    )
    anonymous: bool
    body: str
    created_at: str

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    error: str = Field(..., description="Error description")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
