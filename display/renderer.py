"""界面渲染模块 - 在视频帧上绘制身体关键点、当前判定和健康建议。"""

from typing import Optional, Tuple

import cv2
import numpy as np

from models.data_models import Advice, PoseSample, Verdict

# 关键点连线
_SKELETON = [
    ("left_ear", "left_eye"),
    ("left_eye", "nose"),
    ("nose", "right_eye"),
    ("right_eye", "right_ear"),
    ("left_shoulder", "right_shoulder"),
    ("left_shoulder", "left_elbow"),
    ("right_shoulder", "right_elbow"),
    ("left_elbow", "left_wrist"),
    ("right_elbow", "right_wrist"),
]

_DEFAULT_COLOR = (0, 255, 0)


def hex_to_bgr(color: str, default: Tuple[int, int, int] = _DEFAULT_COLOR) -> Tuple[int, int, int]:
    """'#rrggbb' 转换为 OpenCV 的 BGR 元组，格式不对时返回默认色。"""
    if not color or not color.startswith("#") or len(color) != 7:
        return default
    try:
        r = int(color[1:3], 16)
        g = int(color[3:5], 16)
        b = int(color[5:7], 16)
    except ValueError:
        return default
    return (b, g, r)


class DisplayRenderer:
    """在视频帧上绘制检测结果和建议。"""

    def __init__(self, font_path: str = "SimHei", min_confidence: float = 0.4):
        """初始化中文字体，字体不存在时回退到 OpenCV 默认英文字体。"""
        self.min_confidence = min_confidence
        self._pil_font = None
        self._use_pil = False

        try:
            font = self._try_load_font(font_path)
            if font is not None:
                self._pil_font = font
                self._use_pil = True
        except Exception:
            self._use_pil = False

    @staticmethod
    def _try_load_font(font_path: str):
        """尝试加载字体文件，返回 PIL ImageFont 或 None。"""
        from PIL import ImageFont

        try:
            return ImageFont.truetype(font_path, 20)
        except (OSError, IOError):
            pass

        common_paths = [
            "/usr/share/fonts/truetype/simhei/SimHei.ttf",
            "/usr/share/fonts/SimHei.ttf",
            "C:\\Windows\\Fonts\\simhei.ttf",
            "/System/Library/Fonts/STHeiti Medium.ttc",
        ]
        for path in common_paths:
            try:
                return ImageFont.truetype(path, 20)
            except (OSError, IOError):
                continue

        return None

    def render(
        self,
        frame: np.ndarray,
        pose: Optional[PoseSample],
        verdict: Optional[Verdict],
        advice: Optional[Advice] = None,
    ) -> np.ndarray:
        """渲染检测结果到视频帧，返回渲染后的帧图像。"""
        output = frame.copy()

        if pose:
            self._draw_pose(output, pose)

        if verdict is not None:
            self._draw_verdict(output, verdict)

        if advice is not None:
            self._draw_advice(output, advice)

        return output

    def _draw_pose(self, frame: np.ndarray, pose: PoseSample) -> None:
        """绘制可信的关键点和骨架连线。"""
        points = {
            kp.name: (int(kp.x), int(kp.y))
            for kp in pose
            if kp.score >= self.min_confidence
        }
        for a, b in _SKELETON:
            if a in points and b in points:
                cv2.line(frame, points[a], points[b], (255, 200, 0), 2)
        for pt in points.values():
            cv2.circle(frame, pt, 4, (0, 255, 0), -1)

    def _draw_verdict(self, frame: np.ndarray, verdict: Verdict) -> None:
        """在左上角绘制判定文字和说明。"""
        color = hex_to_bgr(verdict.color)
        lines = [line for line in (verdict.message, verdict.detail) if line]
        if not lines:
            return

        if self._use_pil:
            self._draw_pil_lines(frame, lines, x=10, y_start=20, color=color)
        else:
            # 英文回退
            text = f"{verdict.status} ({verdict.severity.value})"
            cv2.putText(
                frame, text, (10, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2,
            )

    def _draw_advice(self, frame: np.ndarray, advice: Advice) -> None:
        """在画面底部绘制建议横幅。"""
        h, w = frame.shape[:2]
        banner_h = 70
        cv2.rectangle(frame, (0, h - banner_h), (w, h), (40, 40, 40), -1)

        color = (0, 0, 255) if advice.priority == "critical" else (0, 200, 255)

        if self._use_pil:
            self._draw_pil_lines(
                frame, [advice.title, advice.action_text],
                x=10, y_start=h - banner_h + 6, color=color,
            )
        else:
            cv2.putText(
                frame, advice.type.upper(), (10, h - banner_h + 40),
                cv2.FONT_HERSHEY_SIMPLEX, 0.9, color, 2,
            )

    def _draw_pil_lines(
        self,
        frame: np.ndarray,
        lines: list,
        x: int,
        y_start: int,
        color: tuple,
    ) -> None:
        """使用 PIL 在帧上绘制多行文字（BGR color -> RGB fill）。"""
        from PIL import Image, ImageDraw

        img_pil = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(img_pil)
        fill = (color[2], color[1], color[0])
        y = y_start
        for line in lines:
            draw.text((x, y), line, font=self._pil_font, fill=fill)
            y += 28
        result = cv2.cvtColor(np.array(img_pil), cv2.COLOR_RGB2BGR)
        frame[:] = result
