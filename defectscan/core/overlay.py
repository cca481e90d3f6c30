"""Overlay rendering for detection results."""

import cv2
import numpy as np

from .detector import DetectionResult

# BGR, matching the red used for defect markers
MARK_COLOR = (38, 38, 220)
FILL_ALPHA = 0.15


def render_overlay(image: np.ndarray, result: DetectionResult,
                   draw_edges: bool = True) -> np.ndarray:
    """
    Draw detected components on top of an image.

    Args:
        image: Source image, grayscale or RGB(A)
        result: Detection result for that image
        draw_edges: Also mark each component's border points

    Returns:
        BGR image with circles, outlines and "#id (pixels)" labels
    """
    if image.ndim == 3 and image.shape[2] < 3:
        image = image[:, :, 0]

    if image.ndim == 2:
        base = cv2.cvtColor(image.astype(np.uint8), cv2.COLOR_GRAY2BGR)
    else:
        base = cv2.cvtColor(np.ascontiguousarray(image[:, :, :3], dtype=np.uint8),
                            cv2.COLOR_RGB2BGR)

    fill = base.copy()
    for comp in result.components:
        center = (int(round(comp.center_x)), int(round(comp.center_y)))
        cv2.circle(fill, center, max(1, int(round(comp.radius))), MARK_COLOR, -1)
    overlay = cv2.addWeighted(fill, FILL_ALPHA, base, 1 - FILL_ALPHA, 0)

    for comp in result.components:
        center = (int(round(comp.center_x)), int(round(comp.center_y)))
        radius = max(1, int(round(comp.radius)))
        cv2.circle(overlay, center, radius, MARK_COLOR, 2)

        if draw_edges and comp.edge_points:
            pts = np.asarray(comp.edge_points, dtype=np.intp)
            overlay[pts[:, 1], pts[:, 0]] = MARK_COLOR

        label = f"#{comp.id} ({comp.pixel_count})"
        cv2.putText(overlay, label, (center[0] + radius + 4, center[1] + 6),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, MARK_COLOR, 1, cv2.LINE_AA)

    return overlay
