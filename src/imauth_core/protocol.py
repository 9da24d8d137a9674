# File: src/imauth_core/protocol.py
"""
IM 认证握手协议 (Handshake Protocol)

负责认证请求的序列化与服务器响应的解析/校验。

线上格式 (明文 JSON，默认无分帧):
    请求: {"type":"auth","username":"<str>","password":"<str>"}
    响应: {"success": <bool>, "message": "<str>"}

默认模式假设服务器的完整响应在一次读取中到达 (已知限制)；
Framing.LINE 模式下以换行符界定消息边界。
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum

from .exceptions import ProtocolError
from .outcome import ConnectionOutcome, Rejected, Success

logger = logging.getLogger(__name__)

REQUEST_TYPE = "auth"
ENCODING = "utf-8"
LINE_DELIMITER = b"\n"
MAX_RESPONSE_BYTES = 64 * 1024


class Framing(Enum):
    """消息分帧方式。"""

    NONE = "none"
    """无分帧：首个数据块即为完整响应。"""

    LINE = "line"
    """行分帧：请求以换行结尾，响应读到首个换行为止。"""


@dataclass(frozen=True)
class Credentials:
    """用户提交的登录凭据 (不可变，按值传入单次尝试)。"""

    username: str
    password: str

    def __repr__(self) -> str:
        """隐藏密码字段，防止日志泄露敏感信息。"""
        return f"<{self.__class__.__name__} username='{self.username}', password='******'>"


@dataclass(frozen=True)
class AuthResponse:
    """解析后的服务器响应。

    Attributes:
        success: 认证是否通过。
        message: 服务器附带的说明 (失败时通常存在)。
    """

    success: bool
    message: str | None = None


def serialize_request(credentials: Credentials, framing: Framing = Framing.NONE) -> bytes:
    """构建认证请求包。

    Args:
        credentials: 登录凭据。
        framing: 分帧方式，LINE 模式下追加换行符。

    Returns:
        bytes: UTF-8 编码的紧凑 JSON。

    Raises:
        ProtocolError: 凭据中含有无法编码的字符 (如孤立代理项)。
    """
    request = {
        "type": REQUEST_TYPE,
        "username": credentials.username,
        "password": credentials.password,
    }
    try:
        data = json.dumps(request, ensure_ascii=False, separators=(",", ":")).encode(ENCODING)
    except UnicodeEncodeError as e:
        raise ProtocolError(f"认证请求编码失败: {e.reason}") from e

    if framing is Framing.LINE:
        data += LINE_DELIMITER
    return data


def parse_response(payload: bytes) -> AuthResponse:
    """解析服务器响应。

    Args:
        payload: 收到的原始字节 (不含分帧符)。

    Returns:
        AuthResponse: 校验通过的响应对象。

    Raises:
        ProtocolError: 非 UTF-8、非 JSON 对象、缺少 success 字段或类型错误。
    """
    try:
        body = json.loads(payload.decode(ENCODING))
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        # ValueError 覆盖 JSONDecodeError 与超长整数；RecursionError 来自过深的嵌套
        raise ProtocolError(f"响应不是合法的 JSON: {type(e).__name__}") from e

    if not isinstance(body, dict):
        raise ProtocolError(f"响应必须是 JSON 对象，实际为 {type(body).__name__}")

    if "success" not in body:
        raise ProtocolError("响应缺少 success 字段")

    success = body["success"]
    if not isinstance(success, bool):
        raise ProtocolError(f"success 字段类型错误: {success!r}")

    message = body.get("message")
    if message is not None and not isinstance(message, str):
        message = str(message)

    return AuthResponse(success=success, message=message)


def to_outcome(response: AuthResponse) -> ConnectionOutcome:
    """将合法响应映射为尝试结果。"""
    if response.success:
        return Success()
    return Rejected(message=response.message or "")


def take_message(
    buffer: bytearray,
    chunk: bytes,
    framing: Framing,
    max_bytes: int = MAX_RESPONSE_BYTES,
) -> bytes | None:
    """将新到达的数据块交给分帧器，返回一条完整消息 (若已凑齐)。

    Args:
        buffer: 当前尝试的接收缓冲区 (LINE 模式下会被修改)。
        chunk: 新到达的数据。
        framing: 分帧方式。
        max_bytes: 单条响应允许的最大字节数。

    Returns:
        bytes | None: 完整消息；LINE 模式下尚未读到换行时返回 None。

    Raises:
        ProtocolError: 未读到换行符前缓冲已超过 max_bytes。
    """
    if framing is Framing.NONE:
        return bytes(chunk)

    buffer.extend(chunk)
    idx = buffer.find(LINE_DELIMITER)
    if idx < 0:
        if len(buffer) > max_bytes:
            size = len(buffer)
            buffer.clear()
            raise ProtocolError(f"响应超过 {max_bytes} 字节仍未读到换行符 (已缓冲 {size} 字节)")
        logger.debug(f"等待换行符，已缓冲 {len(buffer)} 字节")
        return None

    message = bytes(buffer[:idx])
    if len(buffer) > idx + 1:
        logger.debug(f"丢弃换行后的 {len(buffer) - idx - 1} 字节多余数据")
    buffer.clear()
    return message
