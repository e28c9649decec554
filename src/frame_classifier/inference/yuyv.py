"""
Drawing and conversion helpers for packed YUYV buffers.

Colors are 16-bit YUYV words: the low byte is luma, the high byte the
chroma value written to both U and V (0x80 is neutral). 0x8000 is black,
0x80FF is white.

Shapes are rasterized by OpenCV into a binary mask which is then written
into the luma and chroma bytes, so drawing never crosses a macro-pixel in
a way that shifts color.
"""

from typing import Tuple

import cv2
import numpy as np

BLACK = 0x8000
WHITE = 0x80FF
FONT = cv2.FONT_HERSHEY_SIMPLEX


def split_color(color: int) -> Tuple[int, int]:
    """Split a YUYV word into (luma, chroma)."""
    return color & 0xFF, (color >> 8) & 0xFF


def bgr_to_yuyv(bgr: np.ndarray) -> np.ndarray:
    """
    Encode a BGR image as packed YUYV (ITU-R BT.601, video range).

    Chroma is averaged over each horizontal pixel pair. This is the inverse
    of cv2.COLOR_YUV2BGR_YUYV up to rounding.

    Args:
        bgr: (H, W, 3) uint8 image with even width

    Returns:
        (H, W, 2) uint8 YUYV buffer
    """
    if bgr.ndim != 3 or bgr.shape[2] != 3:
        raise ValueError(f"Expected (H, W, 3) BGR image, got {bgr.shape}")
    if bgr.shape[1] % 2:
        raise ValueError("YUYV requires an even image width")

    img = bgr.astype(np.float32)
    b, g, r = img[:, :, 0], img[:, :, 1], img[:, :, 2]

    y = 16.0 + 0.257 * r + 0.504 * g + 0.098 * b
    u = 128.0 - 0.148 * r - 0.291 * g + 0.439 * b
    v = 128.0 + 0.439 * r - 0.368 * g - 0.071 * b

    # One U and one V per pixel pair
    u_pair = (u[:, 0::2] + u[:, 1::2]) / 2.0
    v_pair = (v[:, 0::2] + v[:, 1::2]) / 2.0

    out = np.empty(bgr.shape[:2] + (2,), dtype=np.uint8)
    out[:, :, 0] = np.clip(np.rint(y), 0, 255)
    out[:, 0::2, 1] = np.clip(np.rint(u_pair), 0, 255)
    out[:, 1::2, 1] = np.clip(np.rint(v_pair), 0, 255)
    return out


def yuyv_to_bgr(data: np.ndarray) -> np.ndarray:
    """Decode a packed YUYV buffer to BGR."""
    return cv2.cvtColor(data, cv2.COLOR_YUV2BGR_YUYV)


def yuyv_to_rgb(data: np.ndarray) -> np.ndarray:
    """Decode a packed YUYV buffer to RGB."""
    return cv2.cvtColor(data, cv2.COLOR_YUV2RGB_YUYV)


def paste(src: np.ndarray, dst: np.ndarray, x: int, y: int):
    """
    Copy a YUYV buffer into another at (x, y).

    x must be even so chroma pairs stay aligned. The source is clipped to
    the destination.
    """
    if x % 2:
        raise ValueError(f"Paste column must be even for YUYV, got {x}")

    dst_h, dst_w = dst.shape[:2]
    h = min(src.shape[0], dst_h - y)
    w = min(src.shape[1], dst_w - x)
    if h <= 0 or w <= 0:
        return
    w -= w % 2
    dst[y:y + h, x:x + w] = src[:h, :w]


def fill_rect(dst: np.ndarray, x: int, y: int, w: int, h: int, color: int = BLACK):
    """Fill a rectangle, clipped to the buffer."""
    dst_h, dst_w = dst.shape[:2]
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + w, dst_w), min(y + h, dst_h)
    if x1 <= x0 or y1 <= y0:
        return

    luma, chroma = split_color(color)
    dst[y0:y1, x0:x1, 0] = luma
    dst[y0:y1, x0:x1, 1] = chroma


def _apply_mask(dst: np.ndarray, mask: np.ndarray, color: int):
    luma, chroma = split_color(color)
    hit = mask > 0
    dst[hit, 0] = luma
    dst[hit, 1] = chroma


def draw_rect(dst: np.ndarray, x: int, y: int, w: int, h: int,
              color: int = WHITE, thickness: int = 1):
    """Draw a rectangle outline."""
    mask = np.zeros(dst.shape[:2], dtype=np.uint8)
    cv2.rectangle(mask, (x, y), (x + w - 1, y + h - 1), 255, thickness, cv2.LINE_8)
    _apply_mask(dst, mask, color)


def write_text(dst: np.ndarray, text: str, x: int, y: int, color: int = WHITE,
               scale: float = 0.45, thickness: int = 1):
    """
    Write one line of text with its baseline at (x, y).

    Rendering is aliased (LINE_8) so output is reproducible bit for bit.
    """
    if not text:
        return
    mask = np.zeros(dst.shape[:2], dtype=np.uint8)
    cv2.putText(mask, text, (x, y), FONT, scale, 255, thickness, cv2.LINE_8)
    _apply_mask(dst, mask, color)
