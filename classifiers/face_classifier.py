"""面部状态分类模块，判断离屏幕过近、打哈欠和闭眼"""

from typing import Callable, Optional, Tuple

from models.data_models import FaceLandmarks, FaceRegion, Severity, Verdict

# 眼距 / 画面宽度
DISTANCE_RATIO_CRITICAL = 0.30
DISTANCE_RATIO_HIGH = 0.24
DISTANCE_RATIO_MEDIUM = 0.20

# 上下唇中点垂直间距（像素）
YAWN_MOUTH_HEIGHT = 40.0

# 上下眼睑平均间距（像素）
CLOSED_EYE_HEIGHT = 2.0

DEFAULT_FRAME_WIDTH = 640

# 眼睛轮廓中作为上/下眼睑的点序号
_UPPER_LID = 1
_LOWER_LID = 5

# status -> (message, detail, severity, color, flag)
_VERDICTS = {
    "no_face": ("", None, Severity.NONE, "", None),
    "too_close": ("离屏幕太近了！", "请后退到距屏幕 50-70 厘米", Severity.CRITICAL, "#ff3333", "is_too_close"),
    "slightly_close": ("离屏幕过近", "请后退 10-20 厘米", Severity.HIGH, "#ff6584", "is_too_close"),
    "bit_close": ("离屏幕稍近", "最佳距离：50-70 厘米", Severity.MEDIUM, "#ffbb28", "is_too_close"),
    "yawning": ("打哈欠！", "您累了，需要休息一下", Severity.HIGH, "#ff6584", "is_yawn"),
    "eyes_closed": ("眼睛闭上了", "您是不是困了？", Severity.HIGH, "#ff6584", "is_eyes_closed"),
    "ok": ("", None, Severity.NONE, "", None),
}


def make_face_verdict(status: str) -> Verdict:
    """按状态键生成面部判定"""
    message, detail, severity, color, flag = _VERDICTS[status]
    verdict = Verdict(
        domain="face",
        status=status,
        message=message,
        detail=detail,
        severity=severity,
        color=color,
    )
    if flag is not None:
        setattr(verdict, flag, True)
    return verdict


def distance_ratio(face: FaceLandmarks, frame_width: int) -> Optional[float]:
    """眼距占画面宽度的比例，缺少眼睛关键点时返回 None"""
    left_eye = face.region(FaceRegion.LEFT_EYE)
    right_eye = face.region(FaceRegion.RIGHT_EYE)
    if not left_eye or not right_eye:
        return None
    return abs(left_eye[0][0] - right_eye[0][0]) / frame_width


def mouth_height(face: FaceLandmarks) -> Optional[float]:
    """上下唇轮廓中间点的垂直距离"""
    upper = face.region(FaceRegion.UPPER_LIP)
    lower = face.region(FaceRegion.LOWER_LIP)
    if not upper or not lower:
        return None
    upper_y = upper[len(upper) // 2][1]
    lower_y = lower[len(lower) // 2][1]
    return abs(upper_y - lower_y)


def eye_height(face: FaceLandmarks) -> Optional[float]:
    """
    双眼上下眼睑间距的平均值。

    每只眼恰好 6 个点即可计算（序号 1/5 为上下眼睑），不要求多于 6 个点：
    FaceDetector 每只眼只提供 6 个轮廓点。少于 6 个点时返回 None。
    """
    left_eye = face.region(FaceRegion.LEFT_EYE)
    right_eye = face.region(FaceRegion.RIGHT_EYE)
    if len(left_eye) <= _LOWER_LID or len(right_eye) <= _LOWER_LID:
        return None
    left = abs(left_eye[_UPPER_LID][1] - left_eye[_LOWER_LID][1])
    right = abs(right_eye[_UPPER_LID][1] - right_eye[_LOWER_LID][1])
    return (left + right) / 2.0


def _proximity_status(face: FaceLandmarks, frame_width: int) -> Optional[str]:
    ratio = distance_ratio(face, frame_width)
    if ratio is None:
        return None
    if ratio > DISTANCE_RATIO_CRITICAL:
        return "too_close"
    if ratio > DISTANCE_RATIO_HIGH:
        return "slightly_close"
    if ratio > DISTANCE_RATIO_MEDIUM:
        return "bit_close"
    return None


def _yawn_status(face: FaceLandmarks, frame_width: int) -> Optional[str]:
    height = mouth_height(face)
    if height is not None and height > YAWN_MOUTH_HEIGHT:
        return "yawning"
    return None


def _closed_eyes_status(face: FaceLandmarks, frame_width: int) -> Optional[str]:
    height = eye_height(face)
    if height is not None and height < CLOSED_EYE_HEIGHT:
        return "eyes_closed"
    return None


# 依次检查，第一个非 ok 的结果生效
FACE_RULES: Tuple[Callable[[FaceLandmarks, int], Optional[str]], ...] = (
    _proximity_status,
    _yawn_status,
    _closed_eyes_status,
)


class FaceClassifier:
    """根据人脸关键点输出一个面部判定"""

    def classify(self, face: Optional[FaceLandmarks], frame_width: Optional[int] = None) -> Verdict:
        """
        分类单帧面部状态。

        Args:
            face: 人脸关键点，未检测到人脸时为 None
            frame_width: 画面像素宽度，缺省时取 face.frame_width，再缺省取 640

        Returns:
            domain="face" 的 Verdict
        """
        if face is None or not face.regions:
            return make_face_verdict("no_face")

        width = frame_width or face.frame_width or DEFAULT_FRAME_WIDTH

        for rule in FACE_RULES:
            status = rule(face, width)
            if status is not None:
                return make_face_verdict(status)

        return make_face_verdict("ok")
