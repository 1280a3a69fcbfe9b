"""Face enrolment and matching for the third verification factor."""
import json
from typing import Any, Dict, List

from flask import current_app

from campus_attendance import db
from campus_attendance.services.similarity_service import FaceMatch, ImageDecodeError, SimilarityService
from campus_attendance.utils.validators import ValidationError, Validator


class FaceService:
    """Reads thresholds from config and keeps the stored reference vector."""

    @staticmethod
    def settings() -> Dict[str, float]:
        config = current_app.config
        return {
            'threshold': config.get('FACE_MATCH_THRESHOLD', 0.6),
            'scale': config.get('FACE_SIMILARITY_SCALE', 1.5),
            'enrollment_confidence': config.get('FACE_ENROLLMENT_CONFIDENCE', 0.95),
            'block_size': config.get('FACE_BLOCK_SIZE', 20)
        }

    @classmethod
    def encoding_from_payload(cls, payload: Dict[str, Any]) -> List[float]:
        """Extract a feature vector from ``encoding`` or a base64 ``image``.

        ``encoding`` may be a list, a JSON array string or a comma-separated
        string of numbers.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Face data must be an object")

        encoding = payload.get('encoding')
        image = payload.get('image')

        if encoding is None and not image:
            raise ValidationError("Please provide a face image or encoding")

        if encoding is None:
            try:
                decoded = SimilarityService.decode_image(image)
            except ImageDecodeError as e:
                raise ValidationError(str(e)) from e
            return SimilarityService.encode_image(decoded, cls.settings()['block_size'])

        if isinstance(encoding, str):
            try:
                encoding = json.loads(encoding)
            except ValueError:
                try:
                    encoding = [float(part) for part in encoding.split(',') if part.strip()]
                except ValueError as e:
                    raise ValidationError("Face encoding must contain only numbers") from e

        check = Validator.validate_encoding(encoding)
        if not check['is_valid']:
            raise ValidationError(check['errors'][0])

        return [float(value) for value in encoding]

    @classmethod
    def encoding_from_upload(cls, raw: bytes) -> List[float]:
        """Encode an uploaded image file."""
        if not raw:
            raise ValidationError("Uploaded face image is empty")
        try:
            image = SimilarityService.load_image(raw)
        except ImageDecodeError as e:
            raise ValidationError(str(e)) from e
        return SimilarityService.encode_image(image, cls.settings()['block_size'])

    @classmethod
    def match_user(cls, user, encoding: List[float]) -> FaceMatch:
        """Match ``encoding`` against the user's reference.

        A first capture becomes the reference; the caller commits.
        """
        settings = cls.settings()
        match = SimilarityService.match(
            user.face_encoding,
            encoding,
            threshold=settings['threshold'],
            scale=settings['scale'],
            enrollment_confidence=settings['enrollment_confidence']
        )

        if match.enrolled:
            user.face_encoding = list(encoding)
            current_app.logger.info(f"Face auto-enrolled for user {user.id}")

        return match

    @classmethod
    def verify(cls, user, encoding: List[float]) -> FaceMatch:
        match = cls.match_user(user, encoding)
        if match.enrolled:
            db.session.commit()
        return match

    @staticmethod
    def register(user, encoding: List[float]) -> None:
        if not encoding:
            raise ValidationError("Face encoding must not be empty")
        user.face_encoding = list(encoding)
        db.session.commit()
        current_app.logger.info(f"Face registered for user {user.id}")

    @staticmethod
    def remove(user) -> None:
        user.face_encoding = []
        db.session.commit()

    @staticmethod
    def status(user) -> Dict[str, Any]:
        return {
            'has_face_registered': user.has_face_registered(),
            'encoding_length': len(user.face_encoding or [])
        }
