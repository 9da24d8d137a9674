"""
IM 认证核心库 - 配置模块

负责配置的加载、解析与强类型转换。
支持从 TOML 文件、环境变量或字典中加载配置。
"""

import logging
import math
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .exceptions import ConfigError
from .protocol import MAX_RESPONSE_BYTES, Framing

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 10001
DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class ClientConfig:
    """握手客户端的强类型配置对象。

    所有字段均为只读 (frozen=True)，确保配置在运行时不可变。

    Attributes:
        host: 认证服务器地址 (IP 或域名)。
        port: 认证服务器 TCP 端口。
        timeout: 单次尝试的超时时间 (秒)，从发起连接时开始计时。
        framing: 消息分帧方式。
        max_response_bytes: 行分帧模式下单条响应允许缓冲的最大字节数。
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT_MS / 1000
    framing: Framing = Framing.NONE
    max_response_bytes: int = MAX_RESPONSE_BYTES

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError("服务器地址不能为空")
        if not 0 < self.port < 65536:
            raise ConfigError(f"端口超出范围: {self.port}")
        if not math.isfinite(self.timeout) or self.timeout <= 0:
            raise ConfigError(f"超时时间必须为正数: {self.timeout}")
        if self.max_response_bytes <= 0:
            raise ConfigError(f"响应大小上限必须为正数: {self.max_response_bytes}")


def create_config_from_dict(raw_data: dict[str, Any]) -> ClientConfig:
    """通用工厂：将字典转换为强类型配置对象。

    所有字段均为可选，缺失时使用默认值。

    Args:
        raw_data: 原始配置字典 (来自 TOML 或 Env)。

    Returns:
        ClientConfig: 验证并转换后的配置对象。

    Raises:
        ConfigError: 字段格式错误时抛出。
    """
    try:

        def _get(key: str, default: Any) -> Any:
            """获取可选字段，缺失则使用默认值"""
            return raw_data.get(key, default)

        def _to_framing(key: str) -> Framing:
            val = str(_get(key, Framing.NONE.value)).strip().lower()
            try:
                return Framing(val)
            except ValueError:
                raise ConfigError(f"分帧方式无效 '{key}': {val}") from None

        def _to_float(key: str, default: float) -> float:
            """数值字段，接受整数、小数或数字字符串"""
            val = _get(key, default)
            try:
                return float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"数值格式无效 '{key}': {val}") from None

        return ClientConfig(
            host=str(_get("server_host", DEFAULT_HOST)),
            port=int(_get("server_port", DEFAULT_PORT)),
            timeout=_to_float("timeout_ms", DEFAULT_TIMEOUT_MS) / 1000,
            framing=_to_framing("framing"),
            max_response_bytes=int(_get("max_response_bytes", MAX_RESPONSE_BYTES)),
        )

    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"配置生成失败: {e}") from e


def load_config_from_toml(file_path: Path, profile: str = "default") -> ClientConfig:
    """从 TOML 文件加载配置。

    支持多层级查找策略:
    1. [profile.xxx]: 优先查找指定的 profile 块。
    2. [imauth]: 专用配置块。
    3. Root: 兼容根目录直接配置。

    Args:
        file_path: TOML 文件路径。
        profile: 配置预设名。默认为 "default"。

    Raises:
        ConfigError: 文件读取失败或 Profile 不存在。
    """
    if not file_path.exists():
        raise ConfigError(f"配置文件未找到: {file_path}")

    try:
        with open(file_path, "rb") as f:
            data = tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"读取 TOML 失败: {e}") from e

    raw_config = {}

    if "profile" in data:
        if profile not in data["profile"]:
            if profile != "default":
                raise ConfigError(f"未找到预设: [profile.{profile}]")
        else:
            raw_config = data["profile"][profile]

    elif "imauth" in data:
        if profile != "default":
            logger.warning(f"配置仅包含 [imauth] 节，忽略 profile='{profile}'。")
        raw_config = data["imauth"]
    else:
        raw_config = data

    return create_config_from_dict(raw_config)


def load_config_from_env() -> ClientConfig:
    """从环境变量加载配置。

    读取 `IMAUTH_` 前缀的环境变量，例如 `IMAUTH_PORT` -> `server_port`。
    未设置的字段使用默认值。
    """
    env_map = {
        "server_host": "HOST",
        "server_port": "PORT",
        "timeout_ms": "TIMEOUT_MS",
        "framing": "FRAMING",
        "max_response_bytes": "MAX_RESPONSE_BYTES",
    }

    raw_data = {}
    for cfg_key, env_suffix in env_map.items():
        val = os.environ.get(f"IMAUTH_{env_suffix}")
        if val is not None:
            raw_data[cfg_key] = val

    if not raw_data:
        logger.debug("未检测到 IMAUTH_ 前缀的环境变量，使用默认配置")

    return create_config_from_dict(raw_data)
