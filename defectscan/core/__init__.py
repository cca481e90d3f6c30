"""Defect Detection Core Module."""

from .detector import (
    DefectDetector,
    DetectionParams,
    DetectionResult,
    Component,
    detect,
    process_single_image,
)
from .errors import DetectionError, InvalidInputError, ParameterOutOfRangeError
from .session import AnalysisSession

__all__ = [
    "DefectDetector",
    "DetectionParams",
    "DetectionResult",
    "Component",
    "detect",
    "process_single_image",
    "DetectionError",
    "InvalidInputError",
    "ParameterOutOfRangeError",
    "AnalysisSession",
]
