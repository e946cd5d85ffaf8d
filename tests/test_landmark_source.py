"""LandmarkSource 单元测试"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from detectors.landmark_source import LandmarkSource

CAPTURE_TARGET = "detectors.landmark_source.cv2.VideoCapture"


def _capture(opened=True, frame=None):
    cap = MagicMock()
    cap.isOpened.return_value = opened
    if frame is None:
        cap.read.return_value = (False, None)
    else:
        cap.read.return_value = (True, frame)
    return cap


def _source():
    pose_detector = MagicMock()
    pose_detector.detect.return_value = ["pose"]
    face_detector = MagicMock()
    face_detector.detect.return_value = None
    return LandmarkSource(camera_index=1, pose_detector=pose_detector,
                          face_detector=face_detector)


class TestLandmarkSource:
    def test_open_failure(self):
        with patch(CAPTURE_TARGET, return_value=_capture(opened=False)) as mock_cls:
            source = _source()
            assert source.open() is False
        mock_cls.assert_called_once_with(1)
        assert source.is_open is False

    def test_read_before_open_raises(self):
        with pytest.raises(RuntimeError):
            _source().read()

    def test_read_sample(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        with patch(CAPTURE_TARGET, return_value=_capture(frame=frame)):
            source = _source()
            assert source.open() is True
            sample = source.read()

        assert sample.pose == ["pose"]
        assert sample.face is None
        assert sample.frame_width == 640
        assert sample.frame is frame

    def test_read_without_frame(self):
        with patch(CAPTURE_TARGET, return_value=_capture()):
            source = _source()
            source.open()
            assert source.read() is None

    def test_close_releases_everything(self):
        cap = _capture(frame=np.zeros((10, 10, 3), dtype=np.uint8))
        with patch(CAPTURE_TARGET, return_value=cap):
            source = _source()
            source.open()
        pose_detector = source._pose_detector
        face_detector = source._face_detector

        source.close()

        cap.release.assert_called_once()
        pose_detector.close.assert_called_once()
        face_detector.close.assert_called_once()
        assert source.is_open is False

    def test_open_creates_detectors(self):
        with patch(CAPTURE_TARGET, return_value=_capture(frame=np.zeros((4, 4, 3), dtype=np.uint8))), \
                patch("detectors.landmark_source.PoseDetector") as pose_cls, \
                patch("detectors.landmark_source.FaceDetector") as face_cls:
            source = LandmarkSource()
            assert source.open() is True
        pose_cls.assert_called_once_with()
        face_cls.assert_called_once_with()
