# tests/test_protocol.py
"""
测试认证请求的序列化与服务器响应的解析/校验。
"""

import json

import pytest

from imauth_core.exceptions import ProtocolError
from imauth_core.outcome import Rejected, Success
from imauth_core.protocol import (
    AuthResponse,
    Credentials,
    Framing,
    parse_response,
    serialize_request,
    take_message,
    to_outcome,
)

# --- serialize_request ---


def test_serialize_request_wire_format(credentials):
    """请求必须是固定字段顺序的紧凑 JSON。"""
    data = serialize_request(credentials)

    assert data == b'{"type":"auth","username":"alice","password":"secret"}'


def test_serialize_request_is_deterministic(credentials):
    assert serialize_request(credentials) == serialize_request(credentials)


def test_serialize_request_non_ascii():
    """中文用户名按 UTF-8 原样发送，不做 \\u 转义。"""
    data = serialize_request(Credentials(username="张三", password="密码"))

    assert "张三".encode("utf-8") in data
    assert json.loads(data) == {"type": "auth", "username": "张三", "password": "密码"}


def test_serialize_request_escapes_quotes():
    data = serialize_request(Credentials(username='a"b', password="x\\y"))

    assert json.loads(data)["username"] == 'a"b'
    assert json.loads(data)["password"] == "x\\y"


def test_serialize_request_line_framing(credentials):
    data = serialize_request(credentials, Framing.LINE)

    assert data.endswith(b"\n")
    assert data.count(b"\n") == 1


def test_serialize_request_unencodable():
    """孤立代理项无法编码为 UTF-8，应报告协议错误而不是崩溃。"""
    with pytest.raises(ProtocolError, match="编码失败"):
        serialize_request(Credentials(username="\ud800", password="secret"))


def test_credentials_repr_hides_password(credentials):
    assert "secret" not in repr(credentials)
    assert "alice" in repr(credentials)


# --- parse_response ---


def test_parse_response_success():
    assert parse_response(b'{"success":true}') == AuthResponse(success=True, message=None)


def test_parse_response_rejected_with_message():
    resp = parse_response(b'{"success":false,"message":"bad password"}')

    assert resp.success is False
    assert resp.message == "bad password"


def test_parse_response_rejected_without_message():
    assert parse_response(b'{"success": false}').message is None


def test_parse_response_non_string_message():
    assert parse_response(b'{"success":false,"message":42}').message == "42"


def test_parse_response_ignores_extra_fields():
    assert parse_response(b'{"success":true,"token":"abc"}').success is True


@pytest.mark.parametrize(
    "payload",
    [
        b"\x00\x01",
        b"",
        b"not json",
        b'{"success":',
        b"\xff\xfe{}",
        b'["success", true]',
        b'"success"',
        b"null",
        b"{}",
        b'{"message":"no flag"}',
        b'{"success":"true"}',
        b'{"success":1}',
        b'{"success":null}',
        b"[" * 100_000,
        b'{"success":false,"message":' + b"9" * 5000 + b"}",
    ],
)
def test_parse_response_malformed(payload):
    """任何不合规的响应都必须抛出 ProtocolError，而不是默认值。"""
    with pytest.raises(ProtocolError):
        parse_response(payload)


# --- to_outcome ---


def test_to_outcome_success():
    assert to_outcome(AuthResponse(success=True)) == Success()


def test_to_outcome_rejected():
    assert to_outcome(AuthResponse(success=False, message="bad password")) == Rejected("bad password")


def test_to_outcome_rejected_default_message():
    assert to_outcome(AuthResponse(success=False)) == Rejected("")


# --- take_message ---


def test_take_message_unframed_returns_first_chunk():
    buf = bytearray()

    assert take_message(buf, b'{"success":', Framing.NONE) == b'{"success":'
    assert buf == bytearray()


def test_take_message_line_accumulates_until_newline():
    buf = bytearray()

    assert take_message(buf, b'{"success":', Framing.LINE) is None
    assert take_message(buf, b"true}", Framing.LINE) is None
    assert take_message(buf, b"\n", Framing.LINE) == b'{"success":true}'
    assert buf == bytearray()


def test_take_message_line_drops_trailing_data():
    buf = bytearray()

    assert take_message(buf, b'{"success":true}\n{"x":1}\n', Framing.LINE) == b'{"success":true}'
    assert buf == bytearray()


def test_take_message_line_rejects_oversized_reply():
    """超过上限仍未读到换行时报协议错误并清空缓冲。"""
    buf = bytearray()

    assert take_message(buf, b"x" * 16, Framing.LINE, max_bytes=32) is None
    with pytest.raises(ProtocolError, match="32"):
        take_message(buf, b"x" * 17, Framing.LINE, max_bytes=32)
    assert buf == bytearray()


def test_take_message_line_accepts_reply_at_limit():
    buf = bytearray()

    assert take_message(buf, b"x" * 32, Framing.LINE, max_bytes=32) is None
    assert take_message(buf, b"\n", Framing.LINE, max_bytes=32) == b"x" * 32
