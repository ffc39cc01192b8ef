"""
Auto-Listen - 基于 Playwright 的 Gemini 自动朗读

回复生成完毕后，自动点击最新回复的“朗读”按钮（只点一次），
并通过多个信号确认播放已经开始。

依赖安装：
    pip install -e .
    playwright install chromium

运行示例：
    python auto_listen.py run
    python auto_listen.py disable
    python auto_listen.py status
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from listen_agent.config import AgentConfig
from listen_agent.core import AutoListenAgent
from listen_agent.settings import SettingsStore, SettingsUnavailable

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

log = logging.getLogger(__name__)


def _show_status(config: AgentConfig, settings: SettingsStore) -> int:
    print(f"自动朗读：{'已启用' if settings.enabled else '已禁用'}")
    if not config.status_path or not Path(config.status_path).exists():
        print("（暂无运行状态）")
        return 0
    status = json.loads(Path(config.status_path).read_text(encoding="utf-8"))
    for key in ("version", "listenButtonCount", "isGenerating", "isProcessing",
                "clickAttempts", "clickSuccesses", "clickFailures", "lastEvent", "lastEventTime"):
        print(f"{key}: {status.get(key)}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Gemini 自动朗读")
    sub = parser.add_subparsers(dest="command")
    run_parser = sub.add_parser("run", help="打开浏览器并开始监视")
    run_parser.add_argument("--url", help="起始地址（默认取 AUTO_LISTEN_URL）")
    sub.add_parser("enable", help="启用自动朗读")
    sub.add_parser("disable", help="禁用自动朗读")
    sub.add_parser("status", help="查看开关与最近一次运行状态")
    args = parser.parse_args(argv)

    config = AgentConfig.from_env()
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    settings = SettingsStore(config.settings_path)

    if args.command in ("enable", "disable"):
        try:
            settings.set(args.command == "enable")
        except SettingsUnavailable as e:
            log.error("%s", e)
            return 1
        print(f"✓ 自动朗读{'已启用' if settings.enabled else '已禁用'}")
        return 0
    if args.command == "status":
        return _show_status(config, settings)

    agent = AutoListenAgent(page=None, config=config, settings=settings)
    try:
        asyncio.run(agent.run(getattr(args, "url", None)))
    except KeyboardInterrupt:
        log.info("已停止")
    return 0


if __name__ == "__main__":
    sys.exit(main())
