"""Auto-Listen Agent 包

包含各个模块：
- models: 数据模型
- config: 运行配置
- perception: 感知模块（页面快照）
- tracker: 稳定性跟踪
- planner: 触发决策
- controller: 执行模块（确认点击）
- session: 会话重置
- memory: 诊断日志与状态导出
- settings: 持久化开关
- reporting: 错误上报
- core: 核心 Agent 类
"""

from .models import ControlSnapshot, SurfaceSnapshot, TrackingState, Decision, DecisionKind
from .config import AgentConfig
from .perception import Perception
from .tracker import StabilityTracker
from .planner import Planner
from .controller import Controller
from .session import SessionMonitor
from .memory import Diagnostics
from .settings import SettingsStore
from .reporting import ErrorReporter
from .core import AutoListenAgent

__all__ = [
    "ControlSnapshot",
    "SurfaceSnapshot",
    "TrackingState",
    "Decision",
    "DecisionKind",
    "AgentConfig",
    "Perception",
    "StabilityTracker",
    "Planner",
    "Controller",
    "SessionMonitor",
    "Diagnostics",
    "SettingsStore",
    "ErrorReporter",
    "AutoListenAgent",
]
