"""数据模型定义"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


@dataclass(frozen=True)
class ControlSnapshot:
    """单个按钮的快照（id 写在 DOM 节点上，跨快照稳定）"""
    id: int
    kind: str  # listen|secondary
    label: str
    document: str = ""  # 所在文档的标识，页面重新加载后会变化

    @property
    def key(self) -> Tuple[str, int]:
        return (self.document, self.id)


@dataclass
class ControlState:
    """按 id 重新检查某个按钮的结果"""
    present: bool
    visible: bool
    label: Optional[str]


@dataclass
class SurfaceSnapshot:
    """当前页面上可见的“朗读”按钮与次级状态按钮"""
    listen: List[ControlSnapshot] = field(default_factory=list)
    secondary: List[ControlSnapshot] = field(default_factory=list)
    generating: bool = False
    document: str = ""

    @property
    def count(self) -> int:
        return len(self.listen) + len(self.secondary)


@dataclass
class TrackingState:
    """进程内唯一的跟踪状态，由 agent 持有并传给各模块"""
    last_stable_count: int = 0
    current_count: int = 0
    count_changed_at: float = 0.0
    is_generating: bool = False
    is_processing: bool = False
    processing_ended_at: Optional[float] = None
    surface_identity: Optional[str] = None
    document_id: Optional[str] = None
    processed: Set[Tuple[str, int]] = field(default_factory=set)
    initialized: bool = False


class DecisionKind(str, Enum):
    NOOP = "noop"
    TRIGGER = "trigger"
    REBASE = "rebase"


@dataclass
class Decision:
    """Planner 输出的决策"""
    kind: DecisionKind
    count: int
    increase: int = 0
    reason: str = ""


@dataclass
class LogEntry:
    """单条诊断日志"""
    timestamp: str  # ISO-8601 UTC
    message: str


@dataclass
class ErrorReport:
    """交给错误上报 sink 的内容"""
    name: str
    message: str
    stack: str
    frames: List[Dict[str, Any]] = field(default_factory=list)
    breadcrumbs: List[Dict[str, Any]] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)
