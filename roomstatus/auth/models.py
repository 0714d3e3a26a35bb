"""Data models for the device-code sign-in flow."""

import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..core.timezone_utils import serialize_iso_utc

DEFAULT_EXPIRY_SKEW = datetime.timedelta(seconds=60)


class DeviceCodeInfo(BaseModel):
    """Code pair issued by the identity platform for a device sign-in."""

    user_code: str = Field(..., description="Short code the user types on the verification page")
    device_code: str = Field(..., description="Opaque code the device polls with")
    verification_uri: str = Field(..., description="Page where the user enters the code")
    expires_in: int = Field(default=900, description="Seconds until the codes expire")
    interval: int = Field(default=5, description="Minimum polling interval in seconds")
    message: Optional[str] = Field(default=None, description="Human-readable instructions")

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "DeviceCodeInfo":
        return cls(
            user_code=data["user_code"],
            device_code=data["device_code"],
            verification_uri=data.get("verification_uri") or data.get("verification_url", ""),
            expires_in=int(data.get("expires_in", 900)),
            interval=int(data.get("interval", 5)),
            message=data.get("message"),
        )

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "userCode": self.user_code,
            "deviceCode": self.device_code,
            "verificationUri": self.verification_uri,
            "expiresIn": self.expires_in,
            "interval": self.interval,
            "message": self.message,
        }


class TokenInfo(BaseModel):
    """Access/refresh token pair with an absolute expiry."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime.datetime
    id_token: Optional[str] = None

    @classmethod
    def from_response(cls, data: dict[str, Any], now: datetime.datetime) -> "TokenInfo":
        """Build from a token endpoint response; expires_in is relative to now."""
        expires_in = int(data.get("expires_in", 3600))
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=now + datetime.timedelta(seconds=expires_in),
            id_token=data.get("id_token"),
        )

    def is_expired(
        self, now: datetime.datetime, skew: datetime.timedelta = DEFAULT_EXPIRY_SKEW
    ) -> bool:
        """True when the token expires within skew of now."""
        return now + skew >= self.expires_at

    def expires_in(self, now: datetime.datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))

    def to_api_dict(self, now: datetime.datetime) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in(now),
            "expiresAt": serialize_iso_utc(self.expires_at),
        }


class PollStatus(str, Enum):
    """Outcome of one token poll."""

    PENDING = "pending"
    FAILED = "failed"
    SUCCESS = "success"


class TokenPollResult(BaseModel):
    """Result of polling the token endpoint with a device code."""

    status: PollStatus
    token: Optional[TokenInfo] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
