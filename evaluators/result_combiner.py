"""判定合并模块，把坐姿判定和面部判定合并为每次采样的唯一结果"""

from models.data_models import Severity, Verdict


def combine_results(posture: Verdict, face: Verdict) -> Verdict:
    """
    按固定优先级合并坐姿与面部判定。

    同等严重程度下坐姿优先；面部 critical、哈欠和闭眼例外。

    Args:
        posture: 坐姿判定
        face: 面部判定

    Returns:
        二者之一
    """
    if face.severity == Severity.CRITICAL:
        return face
    if posture.severity == Severity.CRITICAL:
        return posture
    if face.is_yawn or face.is_eyes_closed:
        return face
    if posture.severity == Severity.HIGH:
        return posture
    if face.severity == Severity.HIGH:
        return face
    if posture.severity == Severity.MEDIUM:
        return posture
    if face.severity == Severity.MEDIUM:
        return face
    return posture
