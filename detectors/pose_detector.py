"""身体关键点检测模块，基于 MediaPipe Pose"""

from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from models.data_models import Keypoint, PoseSample

# 关键点名称 -> MediaPipe Pose 索引（名称与 MoveNet 17 点保持一致）
POSE_KEYPOINT_INDICES = {
    "nose": 0,
    "left_eye": 2,
    "right_eye": 5,
    "left_ear": 7,
    "right_ear": 8,
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_elbow": 13,
    "right_elbow": 14,
    "left_wrist": 15,
    "right_wrist": 16,
    "left_hip": 23,
    "right_hip": 24,
    "left_knee": 25,
    "right_knee": 26,
    "left_ankle": 27,
    "right_ankle": 28,
}


class PoseDetector:
    """使用 MediaPipe Pose 检测单人身体关键点"""

    def __init__(
        self,
        model_complexity: int = 0,
        min_detection_confidence: float = 0.5,
    ):
        """初始化 MediaPipe Pose"""
        self._pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=model_complexity,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=0.5,
        )

    def detect(self, frame: np.ndarray) -> Optional[PoseSample]:
        """
        检测单帧图像中的身体关键点。

        Args:
            frame: BGR 格式的 OpenCV 图像帧

        Returns:
            Keypoint 列表（像素坐标，score 为可见度）；未检测到人时返回 None
        """
        h, w = frame.shape[:2]

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False

        results = self._pose.process(rgb_frame)

        if not results.pose_landmarks:
            return None

        landmarks = results.pose_landmarks.landmark

        return [
            Keypoint(
                name=name,
                x=landmarks[idx].x * w,
                y=landmarks[idx].y * h,
                score=float(landmarks[idx].visibility),
            )
            for name, idx in POSE_KEYPOINT_INDICES.items()
        ]

    def close(self):
        """释放 MediaPipe 资源"""
        self._pose.close()
