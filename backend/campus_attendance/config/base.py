"""Base configuration shared by every environment."""
import os
from datetime import timedelta


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_ALGORITHM = 'HS256'
    JWT_TOKEN_LOCATION = ['headers', 'query_string']
    JWT_QUERY_STRING_NAME = 'token'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = "200 per day, 50 per hour"

    # Geofencing
    DEFAULT_GEOFENCE_RADIUS = 50  # meters

    # Attendance
    LATE_THRESHOLD_MINUTES = 15

    # Face similarity (block-colour placeholder, not a biometric control)
    FACE_MATCH_THRESHOLD = 0.6
    FACE_SIMILARITY_SCALE = 1.5
    FACE_ENROLLMENT_CONFIDENCE = 0.95
    FACE_BLOCK_SIZE = 20

    # Realtime
    REDIS_URL = os.environ.get('REDIS_URL') or None
    SSE_QUEUE_SIZE = 50
    SSE_HEARTBEAT_SECONDS = 30

    # File Upload
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024  # 8MB

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = 'logs/app.log'
