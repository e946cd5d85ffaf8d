"""人脸关键点检测模块，基于 MediaPipe FaceMesh"""

from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import FaceLandmarks, FaceRegion

# 眼睛轮廓：眼角、上睑、上睑、眼角、下睑、下睑（序号 1/5 为上下眼睑）
LEFT_EYE_INDICES = [33, 160, 158, 133, 153, 144]
RIGHT_EYE_INDICES = [362, 385, 387, 263, 373, 380]

# 嘴唇外轮廓，从左嘴角到右嘴角，中间序号为唇中点
UPPER_LIP_INDICES = [61, 185, 40, 39, 37, 0, 267, 269, 270, 409, 291]
LOWER_LIP_INDICES = [61, 146, 91, 181, 84, 17, 314, 405, 321, 375, 291]

REGION_INDICES = {
    FaceRegion.LEFT_EYE: LEFT_EYE_INDICES,
    FaceRegion.RIGHT_EYE: RIGHT_EYE_INDICES,
    FaceRegion.UPPER_LIP: UPPER_LIP_INDICES,
    FaceRegion.LOWER_LIP: LOWER_LIP_INDICES,
}


class FaceDetector:
    """使用 MediaPipe FaceMesh 检测人脸关键点"""

    def __init__(
        self,
        max_num_faces: int = 1,
        min_detection_confidence: float = 0.5,
    ):
        """初始化 MediaPipe FaceMesh"""
        self._face_mesh = mp.solutions.face_mesh.FaceMesh(
            max_num_faces=max_num_faces,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=0.5,
            refine_landmarks=True,
        )

    def detect(self, frame: np.ndarray) -> Optional[FaceLandmarks]:
        """
        检测单帧图像中的人脸关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            按 FaceRegion 分组的 FaceLandmarks；未检测到人脸时返回 None
        """
        h, w = frame.shape[:2]

        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._face_mesh.process(rgb_frame)

        if not results.multi_face_landmarks:
            return None

        face = results.multi_face_landmarks[0]

        # 将归一化坐标转换为像素坐标
        all_landmarks = [
            (lm.x * w, lm.y * h) for lm in face.landmark
        ]

        regions = {
            region: [all_landmarks[i] for i in indices]
            for region, indices in REGION_INDICES.items()
        }

        return FaceLandmarks(
            regions=regions,
            all_landmarks=all_landmarks,
            frame_width=w,
        )

    def close(self):
        """释放 MediaPipe 资源"""
        self._face_mesh.close()
