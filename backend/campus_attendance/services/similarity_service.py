"""Face similarity placeholder.

The "face" vector here is a grid of mean block colours, not a biometric
embedding. It exists so the third verification factor has a stable
``similarity(a, b) -> score`` contract that a real embedding model can
replace later. It must not be treated as a security control.
"""
import base64
import binascii
import io
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

DEFAULT_SCALE = 1.5
DEFAULT_BLOCK_SIZE = 20


@dataclass
class SimilarityResult:
    """Outcome of comparing two feature vectors."""
    comparable: bool
    score: float
    compared_length: int = 0


@dataclass
class FaceMatch:
    """Outcome of matching a capture against a student's stored vector."""
    verified: bool
    confidence: float
    comparable: bool
    enrolled: bool = False
    threshold: Optional[float] = None


class ImageDecodeError(ValueError):
    """The uploaded capture could not be decoded as an image."""


class SimilarityService:
    """Block-colour encoding and Euclidean similarity."""

    @staticmethod
    def compare(vector_a: Optional[Sequence[float]], vector_b: Optional[Sequence[float]],
                scale: float = DEFAULT_SCALE) -> SimilarityResult:
        """Compare two vectors over their overlapping prefix.

        ``score = max(0, 1 - euclidean_distance / scale)``. An empty or absent
        vector cannot be compared and yields score 0 with ``comparable=False``.
        """
        if not vector_a or not vector_b:
            return SimilarityResult(comparable=False, score=0.0)

        length = min(len(vector_a), len(vector_b))
        sum_squares = 0.0
        for i in range(length):
            sum_squares += (float(vector_a[i]) - float(vector_b[i])) ** 2
        distance = math.sqrt(sum_squares)

        return SimilarityResult(
            comparable=True,
            score=max(0.0, 1.0 - distance / scale),
            compared_length=length
        )

    @staticmethod
    def similarity(vector_a: Optional[Sequence[float]], vector_b: Optional[Sequence[float]],
                   scale: float = DEFAULT_SCALE) -> float:
        """Score in [0, 1]; 0 when the vectors cannot be compared."""
        return SimilarityService.compare(vector_a, vector_b, scale).score

    @staticmethod
    def match(stored: Optional[Sequence[float]], captured: Optional[Sequence[float]],
              threshold: float, scale: float = DEFAULT_SCALE,
              enrollment_confidence: float = 0.95) -> FaceMatch:
        """Match a capture against the stored reference.

        With no stored reference the capture auto-enrolls: the match always
        succeeds at ``enrollment_confidence`` and the caller persists the
        capture as the new reference.
        """
        if not stored:
            return FaceMatch(
                verified=bool(captured),
                confidence=enrollment_confidence if captured else 0.0,
                comparable=bool(captured),
                enrolled=bool(captured),
                threshold=threshold
            )

        result = SimilarityService.compare(stored, captured, scale)
        return FaceMatch(
            verified=result.comparable and result.score >= threshold,
            confidence=result.score,
            comparable=result.comparable,
            threshold=threshold
        )

    @staticmethod
    def encode_image(image: Image.Image, block_size: int = DEFAULT_BLOCK_SIZE) -> list:
        """Encode the central half of an image as mean RGB per block.

        The crop spans the middle 50% in both axes. Each block contributes
        three values: the block's mean channel intensity rounded to an
        integer and divided by 255. Edge blocks may be smaller than
        ``block_size``.
        """
        pixels = np.asarray(image.convert('RGB'), dtype=np.float64)
        height, width = pixels.shape[:2]

        start_x, end_x = width // 4, (3 * width) // 4
        start_y, end_y = height // 4, (3 * height) // 4

        encoding = []
        for y in range(start_y, end_y, block_size):
            for x in range(start_x, end_x, block_size):
                block = pixels[y:min(y + block_size, end_y), x:min(x + block_size, end_x)]
                means = block.reshape(-1, 3).mean(axis=0)
                encoding.extend(round(float(value)) / 255 for value in means)

        return encoding

    @staticmethod
    def decode_image(data: str) -> Image.Image:
        """Decode a base64 (optionally data-URL) image payload."""
        if ',' in data and data.lstrip().startswith('data:'):
            data = data.split(',', 1)[1]

        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Invalid image data: {e}") from e

        return SimilarityService.load_image(raw)

    @staticmethod
    def load_image(raw: bytes) -> Image.Image:
        """Open raw image bytes (an uploaded file)."""
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Invalid image data: {e}") from e

        return image
