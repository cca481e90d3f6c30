"""
Defect Detection Core Module

Finds clusters of pixels whose brightness deviates from the image's global
mean by at least a configurable margin, and reports each cluster's location,
size and outline.
"""

import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

import cv2
import numpy as np

from .errors import InvalidInputError, ParameterOutOfRangeError
from .labeling import ComponentRecord, aggregate_components, label_components

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights for R, G, B
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

# Upper bound on border points reported per component
MAX_EDGE_POINTS = 20000


@dataclass(frozen=True)
class DetectionParams:
    """Parameters for defect detection."""

    min_spot_size_px: int = 40  # components smaller than this are dropped
    min_contrast_percent: float = 12.0  # deviation from mean, % of 255

    @property
    def contrast_margin(self) -> float:
        """Absolute intensity margin on the 0-255 scale."""
        return self.min_contrast_percent / 100 * 255

    def validate(self) -> None:
        """Raise ParameterOutOfRangeError unless both parameters are usable."""
        size = self.min_spot_size_px
        if isinstance(size, bool) or not isinstance(size, numbers.Integral) or size < 1:
            raise ParameterOutOfRangeError(
                f"min_spot_size_px must be an integer >= 1, got {size!r}"
            )
        contrast = self.min_contrast_percent
        if isinstance(contrast, bool) or not isinstance(contrast, numbers.Real):
            raise ParameterOutOfRangeError(
                f"min_contrast_percent must be a number, got {contrast!r}"
            )
        if not 0 < contrast <= 100:
            raise ParameterOutOfRangeError(
                f"min_contrast_percent must be in (0, 100], got {contrast}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return {
            "min_spot_size_px": self.min_spot_size_px,
            "min_contrast_percent": self.min_contrast_percent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionParams":
        """Create parameters from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class Component:
    """A surviving defect region, ready to be drawn."""

    id: int
    pixel_count: int
    center_x: float
    center_y: float
    radius: float
    bbox: Tuple[int, int, int, int]  # (min_x, min_y, max_x, max_y)
    edge_points: Tuple[Tuple[int, int], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pixel_count": self.pixel_count,
            "center_x": round(self.center_x, 2),
            "center_y": round(self.center_y, 2),
            "radius": self.radius,
            "bbox": list(self.bbox),
            "edge_points": [list(p) for p in self.edge_points],
        }


@dataclass(frozen=True)
class DetectionResult:
    """Results from one detection run."""

    width: int
    height: int
    components: Tuple[Component, ...] = ()
    params: Optional[DetectionParams] = field(default=None, compare=False)

    def to_dict(self, include_edges: bool = True) -> Dict[str, Any]:
        """Convert results to dictionary."""
        components = []
        for comp in self.components:
            d = comp.to_dict()
            if not include_edges:
                d.pop("edge_points")
            components.append(d)
        result = {
            "width": self.width,
            "height": self.height,
            "component_count": len(self.components),
            "components": components,
        }
        if self.params is not None:
            result["params"] = self.params.to_dict()
        return result


def to_intensity(pixels: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Reduce a pixel buffer to one intensity channel and its global mean.

    Args:
        pixels: (H, W) or (H, W, C) array, channels ordered R, G, B[, A]

    Returns:
        (intensity, mean) with intensity a float64 (H, W) array
    """
    pixels = np.asarray(pixels)
    if pixels.ndim not in (2, 3):
        raise InvalidInputError(f"Expected a 2-D or 3-D pixel buffer, got shape {pixels.shape}")
    if pixels.shape[0] < 1 or pixels.shape[1] < 1:
        raise InvalidInputError(f"Image has zero area: {pixels.shape[1]}x{pixels.shape[0]}")

    if pixels.ndim == 2:
        intensity = pixels.astype(np.float64)
    elif pixels.shape[2] >= 3:
        rgb = pixels[:, :, :3].astype(np.float64)
        intensity = rgb @ np.asarray(LUMA_WEIGHTS)
    elif pixels.shape[2] >= 1:
        intensity = pixels[:, :, 0].astype(np.float64)
    else:
        raise InvalidInputError("Pixel buffer has no channels")

    return intensity, float(intensity.mean())


def threshold_mask(intensity: np.ndarray, mean: float,
                   min_contrast_percent: float) -> np.ndarray:
    """Flag pixels that are brighter or darker than the mean by the contrast margin."""
    margin = min_contrast_percent / 100 * 255
    return np.abs(intensity - mean) >= margin


def sample_edge_points(points: Sequence[Tuple[int, int]],
                       limit: int = MAX_EDGE_POINTS) -> List[Tuple[int, int]]:
    """Keep every ceil(len/limit)-th point so at most `limit` remain."""
    if len(points) <= limit:
        return list(points)
    factor = math.ceil(len(points) / limit)
    return list(points[::factor])


def select_components(records: Sequence[ComponentRecord], min_spot_size_px: int,
                      max_edge_points: int = MAX_EDGE_POINTS) -> List[Component]:
    """Drop undersized components and compute centroid and display radius."""
    selected = []
    for rec in records:
        if rec.pixel_count < min_spot_size_px:
            continue
        width = rec.max_x - rec.min_x + 1
        height = rec.max_y - rec.min_y + 1
        selected.append(Component(
            id=rec.id,
            pixel_count=rec.pixel_count,
            center_x=rec.sum_x / rec.pixel_count,
            center_y=rec.sum_y / rec.pixel_count,
            radius=0.5 * max(width, height),
            bbox=rec.bbox,
            edge_points=tuple(sample_edge_points(rec.border, max_edge_points)),
        ))
    return selected


class DefectDetector:
    """
    Global-contrast defect detector.

    Usage:
        detector = DefectDetector()
        result = detector.detect(rgb_image, DetectionParams(min_spot_size_px=20))
    """

    def __init__(self, max_edge_points: int = MAX_EDGE_POINTS):
        if max_edge_points < 1:
            raise ValueError(f"max_edge_points must be >= 1, got {max_edge_points}")
        self.max_edge_points = max_edge_points

    def detect(self, pixels: np.ndarray, params: DetectionParams = None) -> DetectionResult:
        """
        Detect defect regions in an image.

        Args:
            pixels: Image as (H, W) intensities or (H, W, C) RGB(A)
            params: Detection parameters

        Returns:
            DetectionResult with one Component per surviving region

        Raises:
            ParameterOutOfRangeError: if params are invalid
            InvalidInputError: if the image has zero area or a bad shape
        """
        if params is None:
            params = DetectionParams()
        params.validate()

        intensity, mean = to_intensity(pixels)
        height, width = intensity.shape

        mask = threshold_mask(intensity, mean, params.min_contrast_percent)
        logger.debug(f"Mean intensity {mean:.2f}, margin {params.contrast_margin:.2f}, "
                     f"{int(mask.sum())} foreground pixels")

        labels, count = label_components(mask)
        records = aggregate_components(labels, count)
        components = select_components(records, params.min_spot_size_px, self.max_edge_points)

        logger.info(f"Detected {len(components)} of {count} components "
                    f"in {width}x{height} image")

        return DetectionResult(
            width=width,
            height=height,
            components=tuple(components),
            params=params,
        )


def detect(pixels: np.ndarray, params: DetectionParams = None) -> DetectionResult:
    """Run the detection pipeline with the default detector."""
    return DefectDetector().detect(pixels, params)


def load_image(path: str) -> np.ndarray:
    """Load an image file as an RGB(A) or grayscale array."""
    image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise FileNotFoundError(f"Could not load image: {path}")
    return bgr_to_rgb(image)


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes (PNG, JPEG, ...) to RGB(A); None if undecodable."""
    nparr = np.frombuffer(data, np.uint8)
    if nparr.size == 0:
        return None
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    if image is None:
        return None
    return bgr_to_rgb(image)


def bgr_to_rgb(image: np.ndarray) -> np.ndarray:
    """Reorder OpenCV's BGR(A) channels to RGB(A) on a 0-255 scale; grayscale passes through."""
    if image.dtype == np.uint16:
        image = (image // 257).astype(np.uint8)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return image


def process_single_image(path: str, params: DetectionParams = None) -> DetectionResult:
    """
    Convenience function to analyze one image file.

    Args:
        path: Path to the image
        params: Detection parameters

    Returns:
        DetectionResult
    """
    return detect(load_image(path), params)
