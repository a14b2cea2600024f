"""
Status panel drawn over camera frames
Text is rendered with Pillow so the Chinese item and category names can be shown
"""

import cv2
import numpy as np
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import logging

from PIL import Image, ImageDraw, ImageFont

from ..models.classifier import Category
from .display_state import DisplayedState

# RGB
PRIMARY_COLOR = (103, 80, 164)
ERROR_COLOR = (179, 27, 38)
TERTIARY_COLOR = (125, 82, 96)
OK_COLOR = (60, 160, 80)
TEXT_COLOR = (40, 40, 40)

LINE_HEIGHT = 28
PANEL_MARGIN = 12

# Common locations of fonts covering Traditional Chinese
CJK_FONT_CANDIDATES = [
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/google-noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-microhei.ttc",
    "/usr/share/fonts/truetype/arphic/uming.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "C:/Windows/Fonts/msjh.ttc",
]

logger = logging.getLogger(__name__)


def load_font(font_path: Optional[str] = None, size: int = 20,
              candidates: Optional[Sequence[str]] = None):
    """
    Load a TrueType font able to draw Chinese text

    Args:
        font_path: Preferred font file, tried before the candidates
        size: Font size in pixels
        candidates: Fallback font files, defaults to CJK_FONT_CANDIDATES

    Returns:
        (font, localized) where localized is False if only Pillow's default
        font was available and the panel must stay in ASCII
    """
    if candidates is None:
        candidates = CJK_FONT_CANDIDATES
    paths = ([font_path] if font_path else []) + list(candidates)
    for path in paths:
        if not Path(path).exists():
            continue
        try:
            return ImageFont.truetype(path, size), True
        except (IOError, OSError) as e:
            logger.warning(f"Failed to load font {path}: {e}")

    logger.warning("No CJK font found, status panel falls back to ASCII text")
    return ImageFont.load_default(), False


def category_color(state: DisplayedState) -> Tuple[int, int, int]:
    """Recyclable in the primary colour, general trash in red, the rest tertiary"""
    if state.category is Category.RECYCLABLE:
        return PRIMARY_COLOR
    if state.category is Category.GENERAL_TRASH:
        return ERROR_COLOR
    return TERTIARY_COLOR


def status_lines(state: DisplayedState, model_loaded: bool, camera_available: bool = True,
                 localized: bool = True) -> List[Tuple[str, Tuple[int, int, int]]]:
    """
    Panel text as (line, colour) pairs.
    Without a CJK font the raw label and the enum name are shown instead.
    """
    name, category, confidence = state.as_tuple()
    category_rgb = category_color(state)
    model_rgb = OK_COLOR if model_loaded else ERROR_COLOR
    lines = []

    if localized:
        if not camera_available:
            lines.append(("無法取得相機畫面", ERROR_COLOR))
        lines.append((f"辨識到的物品: {name}", TEXT_COLOR))
        if confidence > 0:
            lines.append((f"信心度: {confidence * 100:.1f}%", TEXT_COLOR))
        lines.append((f"分類結果: {category}", category_rgb))
        lines.append(("模型已載入" if model_loaded else "模型載入失敗", model_rgb))
        return lines

    if not camera_available:
        lines.append(("Camera unavailable", ERROR_COLOR))
    lines.append((f"Item: {state.label or 'not detected yet'}", TEXT_COLOR))
    if confidence > 0:
        lines.append((f"Confidence: {confidence * 100:.1f}%", TEXT_COLOR))
    lines.append((f"Category: {state.category.name if state.category else 'unknown'}", category_rgb))
    lines.append(("Model loaded" if model_loaded else "Model failed to load", model_rgb))
    return lines


class StatusRenderer:
    """Draws the status panel onto camera frames, or onto a blank canvas when there is none"""

    def __init__(self, font_path: Optional[str] = None, font_size: int = 20,
                 canvas_size: Tuple[int, int] = (640, 480), font=None,
                 localized: Optional[bool] = None):
        """
        Initialize the renderer

        Args:
            font_path: CJK TrueType font file
            font_size: Font size in pixels
            canvas_size: (width, height) of the blank canvas used without a frame
            font: Already loaded Pillow font, skips font lookup
            localized: Force Chinese (True) or ASCII (False) text
        """
        if font is None:
            font, found = load_font(font_path, font_size)
            localized = found if localized is None else localized
        self.font = font
        self.localized = True if localized is None else localized
        self.canvas_size = tuple(canvas_size)

    def blank_canvas(self) -> np.ndarray:
        width, height = self.canvas_size
        return np.zeros((height, width, 3), dtype=np.uint8)

    def draw(self, frame: Optional[np.ndarray], state: DisplayedState, model_loaded: bool,
             camera_available: bool = True) -> np.ndarray:
        """
        Draw the panel at the bottom of a copy of the frame

        Args:
            frame: BGR frame, or None to draw on a blank canvas
            state: Displayed state snapshot
            model_loaded: Whether the detector has a model
            camera_available: Whether the camera can deliver frames

        Returns:
            BGR image with the panel
        """
        result = self.blank_canvas() if frame is None else frame.copy()
        lines = status_lines(state, model_loaded, camera_available, self.localized)

        h, w = result.shape[:2]
        top = max(0, h - (len(lines) * LINE_HEIGHT + 2 * PANEL_MARGIN))

        overlay = result.copy()
        cv2.rectangle(overlay, (0, top), (w, h), (255, 255, 255), -1)
        cv2.addWeighted(overlay, 0.75, result, 0.25, 0, result)

        image = Image.fromarray(cv2.cvtColor(result, cv2.COLOR_BGR2RGB))
        draw = ImageDraw.Draw(image)
        for i, (text, color) in enumerate(lines):
            draw.text((PANEL_MARGIN, top + PANEL_MARGIN + i * LINE_HEIGHT), text,
                      fill=color, font=self.font)

        return cv2.cvtColor(np.array(image), cv2.COLOR_RGB2BGR)
