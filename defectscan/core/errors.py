"""Exceptions raised by the defect detection core."""


class DetectionError(ValueError):
    """Base class for rejected detection requests."""


class InvalidInputError(DetectionError):
    """The pixel buffer cannot be analyzed (zero area, wrong shape)."""


class ParameterOutOfRangeError(DetectionError):
    """A detection parameter is outside its allowed range."""
