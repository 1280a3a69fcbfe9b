"""Block-colour face vectors and Euclidean similarity.

The vectors exercised here are a placeholder for a real embedding; a
printed photo of the right person (or anyone with similar clothing and
lighting) will match. These tests pin the arithmetic, not any security
property.
"""
import base64
import io
import math

import pytest
from PIL import Image

from campus_attendance.services.similarity_service import ImageDecodeError, SimilarityService


def png_base64(image):
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return base64.b64encode(buffer.getvalue()).decode()


def test_identical_vectors_score_one():
    vector = [0.2, 0.4, 0.6]
    result = SimilarityService.compare(vector, vector)

    assert result.comparable
    assert result.score == 1.0
    assert result.compared_length == 3


def test_score_is_scaled_distance():
    # distance 0.75 over scale 1.5
    assert SimilarityService.similarity([0.0], [0.75]) == pytest.approx(0.5)


def test_score_floors_at_zero():
    assert SimilarityService.similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_empty_vector_is_not_comparable():
    result = SimilarityService.compare([], [0.1, 0.2])

    assert not result.comparable
    assert result.score == 0.0
    assert SimilarityService.similarity(None, [0.1]) == 0.0


def test_similarity_is_symmetric():
    a = [0.1, 0.5, 0.9, 0.3]
    b = [0.2, 0.4, 0.7, 0.6]
    shorter = [0.3, 0.3]

    assert SimilarityService.similarity(a, b) == SimilarityService.similarity(b, a)
    assert SimilarityService.similarity(a, shorter) == SimilarityService.similarity(shorter, a)
    assert SimilarityService.compare(a, shorter).compared_length == SimilarityService.compare(shorter, a).compared_length


def test_compares_overlapping_prefix():
    result = SimilarityService.compare([0.5, 0.5, 0.9], [0.5, 0.5])

    assert result.compared_length == 2
    assert result.score == 1.0


def test_match_auto_enrolls_without_reference():
    match = SimilarityService.match(None, [0.1] * 60, threshold=0.6, enrollment_confidence=0.95)

    assert match.verified
    assert match.enrolled
    assert match.confidence == 0.95


def test_match_rejects_below_threshold():
    match = SimilarityService.match([0.0] * 4, [0.5] * 4, threshold=0.6)

    # distance 1.0 -> score 1/3
    assert not match.verified
    assert not match.enrolled
    assert match.confidence == pytest.approx(1 - 1.0 / 1.5)


def test_match_with_empty_capture_fails():
    match = SimilarityService.match([0.1, 0.2], [], threshold=0.6)

    assert not match.verified
    assert not match.comparable


def test_encode_uniform_image():
    image = Image.new('RGB', (80, 80), color=(255, 0, 51))
    encoding = SimilarityService.encode_image(image, block_size=20)

    # central 40x40 crop -> 2x2 blocks of 3 channels
    assert len(encoding) == 12
    assert encoding[:3] == [1.0, 0.0, 51 / 255]


def test_encode_partial_edge_blocks():
    image = Image.new('RGB', (100, 60), color=(0, 0, 0))
    encoding = SimilarityService.encode_image(image, block_size=20)

    # crop 50x30 -> 3 columns x 2 rows
    assert len(encoding) == 18
    assert all(value == 0 for value in encoding)


def test_encode_rounds_channel_means():
    image = Image.new('RGB', (4, 4), color=(0, 0, 0))
    image.putpixel((1, 1), (255, 255, 255))
    encoding = SimilarityService.encode_image(image, block_size=20)

    # crop is 2x2 starting at (1, 1): mean 63.75 -> 64
    assert encoding == [64 / 255] * 3


def test_decode_data_url():
    payload = 'data:image/png;base64,' + png_base64(Image.new('RGB', (8, 8), 'white'))
    image = SimilarityService.decode_image(payload)

    assert image.size == (8, 8)


def test_decode_rejects_garbage():
    with pytest.raises(ImageDecodeError):
        SimilarityService.decode_image('not-an-image!!')

    with pytest.raises(ImageDecodeError):
        SimilarityService.decode_image(base64.b64encode(b'plain text').decode())


def test_encoded_scores_are_finite():
    a = SimilarityService.encode_image(Image.new('RGB', (60, 60), (10, 20, 30)))
    b = SimilarityService.encode_image(Image.new('RGB', (60, 60), (12, 22, 32)))

    assert math.isfinite(SimilarityService.similarity(a, b))
    assert SimilarityService.similarity(a, b) > 0.9
