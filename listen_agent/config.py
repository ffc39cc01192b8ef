"""运行配置：默认值 + 环境变量（.env）覆盖"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

VERSION = "4.6"

DEFAULT_URL = "https://gemini.google.com/app"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AgentConfig:
    """所有时间单位均为秒"""
    start_url: str = DEFAULT_URL
    headless: bool = False
    profile_dir: Optional[str] = None
    settings_path: str = "auto_listen_settings.json"
    status_path: Optional[str] = "auto_listen_status.json"
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"

    poll_interval: float = 1.0
    session_interval: float = 2.0
    stable_duration: float = 2.0
    grace_period: float = 5.0
    confirm_delay: float = 1.0
    recheck_delay: float = 0.5
    recalibrate_delay: float = 1.5
    max_response_increase: int = 3
    log_limit: int = 100
    version: str = VERSION

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """
        读取 .env 及环境变量。未设置的项保持默认值。
        """
        load_dotenv()
        return cls(
            start_url=os.getenv("AUTO_LISTEN_URL", DEFAULT_URL),
            headless=_env_bool("AUTO_LISTEN_HEADLESS", False),
            profile_dir=os.getenv("AUTO_LISTEN_PROFILE_DIR") or None,
            settings_path=os.getenv("AUTO_LISTEN_SETTINGS", "auto_listen_settings.json"),
            status_path=os.getenv("AUTO_LISTEN_STATUS", "auto_listen_status.json") or None,
            sentry_dsn=os.getenv("AUTO_LISTEN_SENTRY_DSN") or None,
            log_level=os.getenv("AUTO_LISTEN_LOG_LEVEL", "INFO").upper(),
        )
