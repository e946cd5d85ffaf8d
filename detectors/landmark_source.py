"""关键点来源：读取摄像头一帧，同时做身体和人脸关键点检测"""

import logging
from typing import Optional

import cv2

from detectors.face_detector import FaceDetector
from detectors.pose_detector import PoseDetector
from models.data_models import LandmarkSample

logger = logging.getLogger(__name__)


class LandmarkSource:
    """摄像头 + PoseDetector + FaceDetector，每次 read() 产出一个 LandmarkSample"""

    def __init__(self, camera_index: int = 0, pose_detector=None, face_detector=None):
        self.camera_index = camera_index
        self._cap = None
        self._pose_detector = pose_detector
        self._face_detector = face_detector

    def open(self) -> bool:
        """打开摄像头并加载检测模型，失败时返回 False"""
        self._cap = cv2.VideoCapture(self.camera_index)
        if not self._cap.isOpened():
            logger.error("无法打开摄像头 %d", self.camera_index)
            self._cap = None
            return False
        if self._pose_detector is None:
            self._pose_detector = PoseDetector()
        if self._face_detector is None:
            self._face_detector = FaceDetector()
        logger.info("摄像头 %d 已打开", self.camera_index)
        return True

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def read(self) -> Optional[LandmarkSample]:
        """
        读取一帧并检测关键点。

        Returns:
            LandmarkSample；摄像头未返回画面时为 None

        Raises:
            RuntimeError: 摄像头未打开
        """
        if not self.is_open:
            raise RuntimeError("摄像头未打开")

        ret, frame = self._cap.read()
        if not ret:
            return None

        pose = self._pose_detector.detect(frame)
        face = self._face_detector.detect(frame)

        return LandmarkSample(
            pose=pose,
            face=face,
            frame_width=frame.shape[1],
            frame=frame,
        )

    def close(self):
        """释放摄像头和检测模型"""
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None
        if self._pose_detector is not None:
            self._pose_detector.close()
            self._pose_detector = None
        if self._face_detector is not None:
            self._face_detector.close()
            self._face_detector = None
