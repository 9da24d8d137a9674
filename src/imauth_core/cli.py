# src/imauth_core/cli.py
"""
imauth 命令行入口。

加载 .env 与 config.toml 后执行一次登录握手，用于手动验证服务器连通性。
退出码: 0 登录成功 / 1 认证被拒绝 / 2 网络异常 / 3 配置错误。
"""

import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import ClientConfig, load_config_from_env, load_config_from_toml
from .exceptions import ConfigError
from .protocol import Credentials
from .session import LoginEvent, LoginSession, present

logger = logging.getLogger("ImAuthCLI")

EXIT_CODES = {
    LoginEvent.PROCEED: 0,
    LoginEvent.LOGIN_FAILED: 1,
    LoginEvent.CONNECTION_ERROR: 2,
}
EXIT_CONFIG_ERROR = 3


def load_cli_config() -> ClientConfig:
    """
    为 CLI 工具加载配置。
    优先使用当前目录的 config.toml，否则从 .env / 环境变量加载。
    """
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=True)
        logger.debug(f"已加载配置文件: {env_path}")

    config_path = Path.cwd() / "config.toml"
    if config_path.exists():
        logger.info(f"发现配置文件: {config_path}")
        return load_config_from_toml(config_path, os.getenv("IMAUTH_PROFILE", "default"))

    return load_config_from_env()


def read_credentials() -> Credentials:
    """从环境变量读取凭据，缺失时交互式输入。"""
    username = os.getenv("IMAUTH_USERNAME") or input("用户名: ")
    password = os.getenv("IMAUTH_PASSWORD") or getpass.getpass("密码: ")
    return Credentials(username=username, password=password)


async def run(config: ClientConfig, credentials: Credentials) -> int:
    session = LoginSession(config)
    result: dict[str, int] = {}

    def on_event(event: LoginEvent, message: str) -> None:
        result["code"] = EXIT_CODES[event]
        if event is LoginEvent.PROCEED:
            print("登录成功")
        else:
            print(present(event, message), file=sys.stderr)

    session.add_listener(on_event)
    await session.submit(credentials)
    # 让 call_soon 调度的监听器先执行
    await asyncio.sleep(0)
    return result.get("code", EXIT_CODES[LoginEvent.CONNECTION_ERROR])


def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if os.getenv("IMAUTH_DEBUG") else logging.INFO,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        datefmt="%H:%M:%S",
    )
    logger.info(f"imauth-core v{__version__}")

    try:
        config = load_cli_config()
    except ConfigError as e:
        logger.critical(f"启动失败: {e}")
        sys.exit(EXIT_CONFIG_ERROR)

    logger.info(f"认证服务器: {config.host}:{config.port} (超时 {config.timeout}s)")

    try:
        credentials = read_credentials()
        sys.exit(asyncio.run(run(config, credentials)))
    except KeyboardInterrupt:
        logger.info("收到用户中断信号 (Ctrl+C)，退出...")
        sys.exit(130)


if __name__ == "__main__":
    main()
