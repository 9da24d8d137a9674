# tests/conftest.py
import asyncio
import contextlib
import socket
import sys
from pathlib import Path

import pytest

# 确保 src 目录在 sys.path 中
src_path = Path(__file__).resolve().parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from imauth_core.config import ClientConfig
from imauth_core.protocol import Credentials


@pytest.fixture
def credentials():
    """[Fixture] 场景中使用的默认凭据。"""
    return Credentials(username="alice", password="secret")


@pytest.fixture
def client_config():
    """[Fixture] 指向本机、超时较短的配置，端口由各测试覆盖。"""
    return ClientConfig(host="127.0.0.1", port=10001, timeout=1.0)


@pytest.fixture
def refused_port():
    """[Fixture] 一个当前没有任何进程监听的本地端口。"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class AuthServer:
    """测试用认证服务器：记录收到的请求，按脚本回复。"""

    def __init__(self, chunks, delay, close_after_reply):
        self.chunks = chunks
        self.delay = delay
        self.close_after_reply = close_after_reply
        self.requests: list[bytes] = []
        self.connections = 0
        self.port = 0
        self._server: asyncio.Server | None = None

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.connections += 1
        try:
            self.requests.append(await reader.read(4096))
            for chunk in self.chunks:
                await asyncio.sleep(self.delay)
                writer.write(chunk)
                await writer.drain()
            if not self.close_after_reply:
                # 保持连接直到客户端释放 Socket
                await reader.read()
        except OSError:
            pass
        finally:
            writer.close()

    async def __aenter__(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc):
        self._server.close()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._server.wait_closed(), timeout=1.0)


@pytest.fixture
def auth_server():
    """[Fixture] 返回认证服务器工厂。

    用法: async with auth_server(b'{"success":true}') as server: ...
    不传回复内容时服务器保持沉默。
    """

    def _factory(*chunks: bytes, delay: float = 0.0, close_after_reply: bool = False):
        return AuthServer(list(chunks), delay, close_after_reply)

    return _factory


@pytest.fixture
def wait_until():
    """[Fixture] 轮询等待条件成立。"""

    async def _wait(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("等待条件超时")
            await asyncio.sleep(0.01)

    return _wait
