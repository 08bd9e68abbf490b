from __future__ import annotations


class LapAnalyzerError(Exception):
    """Base class for errors raised while loading an activity."""


class FormatError(LapAnalyzerError):
    """Malformed ZIP container or FIT header."""


class UnsupportedCompressionError(LapAnalyzerError):
    """ZIP entry uses a compression method other than stored or deflate."""


class NotFoundError(LapAnalyzerError):
    """The input holds nothing we can compute lap stats from."""


class MalformedInputError(LapAnalyzerError, ValueError):
    """JSON fallback document cannot be parsed or lacks details/splits."""


class DecodeTruncation(LapAnalyzerError):
    """Mid-stream decode failure. Caught by the decoder loop, never surfaced."""
