"""
Analysis session state shared by the API.

Every change of image or parameters starts a new generation. A run only
commits its result if no newer generation was started while it was
computing, so a slow stale run can't overwrite a fresher result.
"""

import threading
from typing import Optional, Tuple
import logging

import numpy as np

from .detector import DetectionParams, DetectionResult

logger = logging.getLogger(__name__)


class AnalysisSession:
    """Current image, parameters and last committed result."""

    def __init__(self, params: DetectionParams = None):
        self._lock = threading.Lock()
        self._default_params = params or DetectionParams()
        self._params = self._default_params
        self._image: Optional[np.ndarray] = None
        self._result: Optional[DetectionResult] = None
        self._result_generation: Optional[int] = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def params(self) -> DetectionParams:
        return self._params

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def result(self) -> Optional[DetectionResult]:
        return self._result

    @property
    def result_generation(self) -> Optional[int]:
        """Generation of the run that produced the stored result."""
        return self._result_generation

    def set_params(self, params: DetectionParams) -> int:
        """Validate and store new parameters; returns the new generation."""
        params.validate()
        with self._lock:
            self._params = params
            self._generation += 1
            return self._generation

    def reset_params(self) -> int:
        return self.set_params(self._default_params)

    def set_image(self, image: np.ndarray) -> int:
        """Replace the current image and drop the result computed for the old one."""
        with self._lock:
            self._image = image
            self._result = None
            self._result_generation = None
            self._generation += 1
            return self._generation

    def begin(self) -> Tuple[int, Optional[np.ndarray], DetectionParams]:
        """Start a run; returns (generation, image, params) snapshot."""
        with self._lock:
            self._generation += 1
            return self._generation, self._image, self._params

    def commit(self, generation: int, result: DetectionResult) -> bool:
        """Store result if it belongs to the latest generation."""
        with self._lock:
            if generation != self._generation:
                logger.info(f"Discarding stale result from generation {generation} "
                            f"(current {self._generation})")
                return False
            self._result = result
            self._result_generation = generation
            return True

    def reset(self) -> None:
        with self._lock:
            self._image = None
            self._result = None
            self._result_generation = None
            self._params = self._default_params
            self._generation += 1
