"""核心数据模型定义"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Keypoint:
    """身体关键点（像素坐标 + 置信度）"""
    name: str
    x: float
    y: float
    score: float


# 单人姿态：按检测顺序排列的关键点列表
PoseSample = List[Keypoint]


def find_keypoint(pose: PoseSample, name: str) -> Optional[Keypoint]:
    """按名称查找关键点，名称重复时取第一个。"""
    for kp in pose:
        if kp.name == name:
            return kp
    return None


class FaceRegion(Enum):
    """人脸关键点分组"""
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    UPPER_LIP = "upper_lip"
    LOWER_LIP = "lower_lip"


@dataclass
class FaceLandmarks:
    """人脸关键点检测结果"""
    regions: Dict[FaceRegion, List[Tuple[float, float]]]
    all_landmarks: List[Tuple[float, float]] = field(default_factory=list)
    frame_width: Optional[int] = None

    def region(self, key: FaceRegion) -> List[Tuple[float, float]]:
        return self.regions.get(key, [])


@dataclass
class LandmarkSample:
    """一次采样的关键点结果"""
    pose: Optional[PoseSample]
    face: Optional[FaceLandmarks]
    frame_width: int
    frame: Any = None


class Severity(str, Enum):
    """判定严重程度"""
    GOOD = "good"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    NONE = "none"


@dataclass
class Verdict:
    """单个分类器在一次采样中的判定"""
    domain: str
    status: str
    message: str = ""
    detail: Optional[str] = None
    severity: Severity = Severity.NONE
    color: str = ""
    is_too_close: bool = False
    is_yawn: bool = False
    is_eyes_closed: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass
class Advice:
    """行为建议"""
    title: str
    text: str
    action_text: str
    type: str
    priority: str
    needs_workout: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AnalyzerState:
    """行为分析器的会话状态"""
    yawn_count: int = 0
    closed_eyes_count: int = 0
    too_close_seconds: float = 0
    slouching_seconds: float = 0
    good_posture_seconds: float = 0
    total_work_seconds: float = 0
    recent_yawns: List[float] = field(default_factory=list)
    recent_closed_eyes: List[float] = field(default_factory=list)
    last_yawn_time: Optional[float] = None
    last_advice_time: Optional[float] = None
    last_break_time: float = 0.0
    last_water_time: float = 0.0
    last_workout_time: float = 0.0
    last_advice_type: Optional[str] = None


@dataclass
class TickResult:
    """一次采样周期的输出"""
    verdict: Verdict
    advice: Optional[Advice]
    timestamp: float


@dataclass
class PostureRecord:
    """持久化日志中的一条记录"""
    user_id: str
    status: str
    severity: str
    timestamp: float
    kind: str = "verdict"
    advice_type: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PostureRecord":
        return cls(
            user_id=str(data["user_id"]),
            status=str(data["status"]),
            severity=str(data.get("severity", Severity.NONE.value)),
            timestamp=float(data["timestamp"]),
            kind=str(data.get("kind", "verdict")),
            advice_type=data.get("advice_type"),
        )
