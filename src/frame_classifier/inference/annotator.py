# src/frame_classifier/inference/annotator.py
"""
Output frame composition.

Pastes the camera frame, darkens a banner at the bottom and writes the
ranked scores, the confirmed label and the throughput text into it. In ROI
mode the ROI outline and the cached confirmed patch are drawn as well.
All values are passed in; nothing is recomputed here.
"""

import logging
from typing import Optional, Sequence

from ..config.pipeline_config import AnnotationConfig, RoiConfig
from .decision import RankedScore
from .frames import RawFrame
from . import yuyv

logger = logging.getLogger(__name__)


class FrameAnnotator:
    """Draws pipeline results onto a packed YUYV output frame."""

    def __init__(self, config: Optional[AnnotationConfig] = None, roi: Optional[RoiConfig] = None):
        self.config = config or AnnotationConfig()
        self.roi = roi

    def annotate(self, output: RawFrame, source: RawFrame, ranked: Sequence[RankedScore],
                 confirmed_label: Optional[str], confirmed_patch: Optional[RawFrame] = None,
                 fps_text: str = "") -> RawFrame:
        """
        Compose the output frame in place.

        Args:
            output: Validated output frame, overwritten
            source: Validated input frame
            ranked: Top-k categories with rescaled scores
            confirmed_label: Sticky confirmed category, if any
            confirmed_patch: Cached patch of the confirmed object (ROI mode)
            fps_text: Throughput indicator

        Returns:
            The output frame
        """
        cfg = self.config
        dst = output.data

        yuyv.paste(source.data, dst, 0, 0)

        if self.roi is not None:
            r = self.roi
            yuyv.draw_rect(dst, r.x, r.y, r.width, r.height, cfg.roi_outline_color)

        if confirmed_patch is not None:
            self._draw_patch(output, confirmed_patch)

        yuyv.fill_rect(dst, 0, cfg.banner_y, output.width, output.height - cfg.banner_y,
                       cfg.banner_color)

        x, y = cfg.scores_origin
        for i, entry in enumerate(ranked):
            self._text(dst, str(entry), x, y + i * cfg.line_spacing)

        if confirmed_label:
            self._text(dst, confirmed_label, *cfg.label_origin)

        self._text(dst, fps_text, *cfg.fps_origin)
        return output

    def _draw_patch(self, output: RawFrame, patch: RawFrame):
        if self.config.patch_slot is not None:
            x, y = self.config.patch_slot
        else:
            x, y = output.width - patch.width, 0
        yuyv.paste(patch.data, output.data, x, y)

    def _text(self, dst, text: str, x: int, y: int):
        yuyv.write_text(dst, text, x, y, self.config.text_color,
                        self.config.text_scale, self.config.text_thickness)
