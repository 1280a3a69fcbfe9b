"""Validation utilities for request payloads."""
import ipaddress
import math
import re
from typing import Any, Dict, List, Optional


class ValidationError(Exception):
    """Raised when a request payload is malformed."""
    pass


class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email:
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email))

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> Dict[str, Any]:
        """Validate required fields in data."""
        errors = []

        for field in required_fields:
            if field not in data or data[field] in (None, ''):
                errors.append(f"Missing required field: {field}")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_coordinates(latitude: Any, longitude: Any) -> Dict[str, Any]:
        """Validate a latitude/longitude pair.

        Distance math lets NaN propagate, so callers reject bad input here.
        """
        errors = []

        try:
            lat = float(latitude)
            lng = float(longitude)
        except (TypeError, ValueError):
            return {"is_valid": False, "errors": ["Latitude and longitude must be numbers"]}

        if math.isnan(lat) or math.isnan(lng) or math.isinf(lat) or math.isinf(lng):
            errors.append("Latitude and longitude must be finite")
        elif not -90 <= lat <= 90:
            errors.append("Latitude must be between -90 and 90")
        elif not -180 <= lng <= 180:
            errors.append("Longitude must be between -180 and 180")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_ip_address(ip_address: Optional[str]) -> bool:
        """Validate an IPv4/IPv6 address string."""
        if not ip_address:
            return False
        try:
            ipaddress.ip_address(ip_address)
        except ValueError:
            return False
        return True

    @staticmethod
    def validate_encoding(encoding: Any) -> Dict[str, Any]:
        """Validate a face feature vector."""
        if not isinstance(encoding, (list, tuple)):
            return {"is_valid": False, "errors": ["Face encoding must be a list of numbers"]}

        for value in encoding:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                return {"is_valid": False, "errors": ["Face encoding must contain only finite numbers"]}

        return {"is_valid": True, "errors": []}
