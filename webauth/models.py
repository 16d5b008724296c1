"""
Data Models Module

This module defines Pydantic models for the data that flows through the
login server.

Models are organized by functional area:
- Authentication models (tokens, user profile, stored credential)
- Service models (health and error responses)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Authentication Models
# ============================================================================

class TokenSet(BaseModel):
    """Validated response from the provider's token endpoint."""
    access_token: str = Field(..., description="Opaque access token", min_length=1)
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: Optional[int] = Field(None, description="Token lifetime in seconds")
    id_token: Optional[str] = Field(None, description="OIDC ID token, if issued")


class UserProfile(BaseModel):
    """
    Snapshot of the user-info resource taken at authentication time.

    Field aliases are the standard OIDC claim names, so the provider's
    user-info JSON validates directly into this model.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    subject: str = Field(..., alias="sub", min_length=1, description="Unique user identifier")
    given_name: Optional[str] = Field(None, description="Given name")
    family_name: Optional[str] = Field(None, description="Family name")
    nickname: Optional[str] = Field(None, description="Nickname")
    display_name: Optional[str] = Field(None, alias="name", description="Full display name")
    picture_url: Optional[str] = Field(None, alias="picture", description="Avatar URL")
    locale: Optional[str] = Field(None, description="Preferred locale")
    updated_at: Optional[datetime] = Field(None, description="Last profile update at the provider")
    email: Optional[str] = Field(None, description="Email address")
    email_verified: bool = Field(default=False, description="Whether the provider verified the email")

    @field_validator("email_verified", mode="before")
    @classmethod
    def null_means_unverified(cls, v: Any) -> Any:
        return False if v is None else v


class Credential(BaseModel):
    """Locally held proof of authentication for one browser session."""
    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    profile: UserProfile
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at

    def remaining_seconds(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until expiry, never negative."""
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return max(0, int((expires_at - now).total_seconds()))


# ============================================================================
# Service Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
