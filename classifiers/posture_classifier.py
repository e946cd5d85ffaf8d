"""坐姿分类模块，根据身体关键点判断驼背、耸肩、肩膀倾斜等状态"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from detectors.geometry import angle_between
from models.data_models import Keypoint, PoseSample, Severity, Verdict, find_keypoint

# 头部前倾角度阈值（度）
HEAD_ANGLE_CRITICAL = 35.0
HEAD_ANGLE_HIGH = 25.0
HEAD_ANGLE_MEDIUM = 15.0

# 耳朵中点相对肩膀中点的水平偏移 / 肩宽
EAR_SHOULDER_RATIO_CRITICAL = 0.15
EAR_SHOULDER_RATIO_HIGH = 0.10
EAR_SHOULDER_RATIO_MEDIUM = 0.05

# 肩膀高度差（像素）
SHOULDER_IMBALANCE_HIGH = 40.0
SHOULDER_IMBALANCE_MEDIUM = 25.0

# 肩宽 / 头宽 下限
SHOULDER_WIDTH_MIN = 1.4

# 仅有眼睛时，用眼距估计头宽的系数
EYE_TO_HEAD_WIDTH = 1.5

# 竖直参考点相对肩膀中点的高度
_VERTICAL_OFFSET = 100.0

COLOR_GOOD = "#00c49f"
COLOR_MEDIUM = "#ffbb28"
COLOR_HIGH = "#ff6584"
COLOR_CRITICAL = "#ff3333"

# status -> (message, detail, severity, color)
_VERDICTS = {
    "no_person": ("未检测到人", "请坐到摄像头前", Severity.NONE, COLOR_MEDIUM),
    "turn_to_camera": ("请面向摄像头", "需要看到面部和双肩", Severity.NONE, COLOR_MEDIUM),
    "slouching_critical": ("严重驼背！", "头部明显前倾，请向后靠", Severity.CRITICAL, COLOR_CRITICAL),
    "slouching": ("明显驼背", "收回头部，挺直后背", Severity.HIGH, COLOR_HIGH),
    "slight_slouch": ("轻微驼背", "稍微挺直后背", Severity.MEDIUM, COLOR_MEDIUM),
    "narrow_shoulders": ("肩膀内扣", "向后展开双肩", Severity.MEDIUM, COLOR_MEDIUM),
    "uneven_shoulders": ("双肩明显不平", None, Severity.HIGH, COLOR_HIGH),
    "slight_tilt": ("双肩轻微倾斜", "调整双肩到同一高度", Severity.MEDIUM, COLOR_MEDIUM),
    "perfect": ("坐姿良好！", "继续保持", Severity.GOOD, COLOR_GOOD),
}


def make_pose_verdict(status: str, detail: Optional[str] = None) -> Verdict:
    """按状态键生成坐姿判定"""
    message, default_detail, severity, color = _VERDICTS[status]
    return Verdict(
        domain="pose",
        status=status,
        message=message,
        detail=detail if detail is not None else default_detail,
        severity=severity,
        color=color,
    )


@dataclass
class PostureMetrics:
    """单帧坐姿几何指标，无法计算的指标为 None"""
    head_angle: Optional[float]
    ear_shoulder_ratio: Optional[float]
    shoulder_to_head_ratio: Optional[float]
    shoulder_height_diff: float
    left_shoulder_higher: bool


def _exceeds(value: Optional[float], threshold: float) -> bool:
    return value is not None and value > threshold


def _below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


def _uneven_detail(m: PostureMetrics) -> str:
    # 图像坐标 y 越小越靠上
    return "左肩偏高" if m.left_shoulder_higher else "右肩偏高"


PostureRule = Tuple[str, Callable[[PostureMetrics], bool], Optional[Callable[[PostureMetrics], str]]]

# 按声明顺序匹配，第一条命中的规则决定结果
POSTURE_RULES: Tuple[PostureRule, ...] = (
    ("slouching_critical",
     lambda m: _exceeds(m.head_angle, HEAD_ANGLE_CRITICAL)
     or _exceeds(m.ear_shoulder_ratio, EAR_SHOULDER_RATIO_CRITICAL), None),
    ("slouching",
     lambda m: _exceeds(m.head_angle, HEAD_ANGLE_HIGH)
     or _exceeds(m.ear_shoulder_ratio, EAR_SHOULDER_RATIO_HIGH), None),
    ("slight_slouch",
     lambda m: _exceeds(m.head_angle, HEAD_ANGLE_MEDIUM)
     or _exceeds(m.ear_shoulder_ratio, EAR_SHOULDER_RATIO_MEDIUM), None),
    ("narrow_shoulders",
     lambda m: _below(m.shoulder_to_head_ratio, SHOULDER_WIDTH_MIN), None),
    ("uneven_shoulders",
     lambda m: m.shoulder_height_diff > SHOULDER_IMBALANCE_HIGH, _uneven_detail),
    ("slight_tilt",
     lambda m: m.shoulder_height_diff > SHOULDER_IMBALANCE_MEDIUM, None),
)


class PostureClassifier:
    """根据单帧姿态关键点输出一个坐姿判定"""

    def __init__(self, min_confidence: float = 0.4):
        self.min_confidence = min_confidence

    def classify(self, pose: Optional[PoseSample]) -> Verdict:
        """
        分类单帧坐姿。

        Args:
            pose: 第一个检测到的人体关键点列表，未检测到人时为 None 或空

        Returns:
            domain="pose" 的 Verdict
        """
        if not pose:
            return make_pose_verdict("no_person")

        nose = find_keypoint(pose, "nose")
        left_shoulder = find_keypoint(pose, "left_shoulder")
        right_shoulder = find_keypoint(pose, "right_shoulder")

        required = (nose, left_shoulder, right_shoulder)
        if any(kp is None or kp.score < self.min_confidence for kp in required):
            return make_pose_verdict("turn_to_camera")

        # 肩宽为零时无法归一化，视为侧身
        if abs(left_shoulder.x - right_shoulder.x) == 0.0:
            return make_pose_verdict("turn_to_camera")

        metrics = self.compute_metrics(pose)

        for status, predicate, detail_fn in POSTURE_RULES:
            if predicate(metrics):
                detail = detail_fn(metrics) if detail_fn is not None else None
                return make_pose_verdict(status, detail)

        return make_pose_verdict("perfect")

    def compute_metrics(self, pose: PoseSample) -> PostureMetrics:
        """计算头部前倾角、耳肩比、肩头比和肩膀高度差。"""
        left_shoulder = find_keypoint(pose, "left_shoulder")
        right_shoulder = find_keypoint(pose, "right_shoulder")
        left_ear = self._visible(pose, "left_ear")
        right_ear = self._visible(pose, "right_ear")
        left_eye = self._visible(pose, "left_eye")
        right_eye = self._visible(pose, "right_eye")

        shoulder_mid = (
            (left_shoulder.x + right_shoulder.x) / 2.0,
            (left_shoulder.y + right_shoulder.y) / 2.0,
        )
        shoulder_width = abs(left_shoulder.x - right_shoulder.x)

        head_angle = None
        ear_shoulder_ratio = None
        head_width = 0.0

        if left_ear is not None and right_ear is not None:
            ear_mid = ((left_ear.x + right_ear.x) / 2.0, (left_ear.y + right_ear.y) / 2.0)
            vertical_point = (shoulder_mid[0], shoulder_mid[1] - _VERTICAL_OFFSET)
            head_angle = angle_between(vertical_point, shoulder_mid, ear_mid)
            ear_shoulder_ratio = abs(ear_mid[0] - shoulder_mid[0]) / shoulder_width
            head_width = abs(left_ear.x - right_ear.x)
        elif left_eye is not None and right_eye is not None:
            head_width = abs(left_eye.x - right_eye.x) * EYE_TO_HEAD_WIDTH

        shoulder_to_head_ratio = shoulder_width / head_width if head_width > 0 else None

        return PostureMetrics(
            head_angle=head_angle,
            ear_shoulder_ratio=ear_shoulder_ratio,
            shoulder_to_head_ratio=shoulder_to_head_ratio,
            shoulder_height_diff=abs(left_shoulder.y - right_shoulder.y),
            left_shoulder_higher=left_shoulder.y < right_shoulder.y,
        )

    def _visible(self, pose: PoseSample, name: str) -> Optional[Keypoint]:
        """耳朵、眼睛需严格高于置信度阈值才参与计算"""
        kp = find_keypoint(pose, name)
        if kp is None or kp.score <= self.min_confidence:
            return None
        return kp
