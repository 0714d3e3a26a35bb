"""Device-code sign-in for the Microsoft Graph display mode."""

from .device_code import DEVICE_CODE_SCOPES, DeviceCodeClient
from .models import DeviceCodeInfo, PollStatus, TokenInfo, TokenPollResult
from .token_store import TokenManager, TokenStore

__all__ = [
    "DEVICE_CODE_SCOPES",
    "DeviceCodeClient",
    "DeviceCodeInfo",
    "PollStatus",
    "TokenInfo",
    "TokenManager",
    "TokenPollResult",
    "TokenStore",
]
