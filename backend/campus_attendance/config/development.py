"""Development configuration."""
import os

from .base import Config


class DevelopmentConfig(Config):
    """Development configuration class."""

    DEBUG = True
    TESTING = False

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DEV_DATABASE_URL') or \
        'sqlite:///campus_attendance_dev.db'
    SQLALCHEMY_ECHO = False

    # Relaxed geofence while testing on a laptop
    DEFAULT_GEOFENCE_RADIUS = 100

    LOG_LEVEL = 'DEBUG'
