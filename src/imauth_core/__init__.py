# src/imauth_core/__init__.py
"""
imauth-core v0.1.0
IM 桌面客户端的登录握手核心库。
"""

from .classifier import classify, describe

# 暴露核心配置
from .config import (
    ClientConfig,
    create_config_from_dict,
    load_config_from_env,
    load_config_from_toml,
)
from .connection import ConnectionManager
from .dispatcher import ResultDispatcher

# 暴露异常体系 (方便上层 try-except)
from .exceptions import (
    ConfigError,
    ErrorCategory,
    ImAuthError,
    ProtocolError,
    StateError,
)
from .outcome import ConnectionOutcome, Rejected, Success, TransportError
from .protocol import AuthResponse, Credentials, Framing, parse_response, serialize_request
from .session import LoginEvent, LoginSession, present
from .state import AttemptState, AttemptStatus

__version__ = "0.1.0"

__all__ = [
    "ConnectionManager",
    "LoginSession",
    "LoginEvent",
    "present",
    "ResultDispatcher",
    "ClientConfig",
    "create_config_from_dict",
    "load_config_from_env",
    "load_config_from_toml",
    "Credentials",
    "AuthResponse",
    "Framing",
    "serialize_request",
    "parse_response",
    "ConnectionOutcome",
    "Success",
    "Rejected",
    "TransportError",
    "AttemptState",
    "AttemptStatus",
    "classify",
    "describe",
    "ImAuthError",
    "ConfigError",
    "ProtocolError",
    "StateError",
    "ErrorCategory",
]
