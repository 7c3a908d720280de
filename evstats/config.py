import os


class Config:
    """Application configuration from environment variables."""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
    FLASK_ENV = os.environ.get('FLASK_ENV', 'production')
    DEBUG = FLASK_ENV == 'development'

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Vehicle defaults (used when settings omit them)
    DEFAULT_BATTERY_CAPACITY_KWH = float(os.environ.get('DEFAULT_BATTERY_CAPACITY_KWH', 60.48))
    DEFAULT_CHARGER_AMPS = float(os.environ.get('DEFAULT_CHARGER_AMPS', 16))
    GRID_VOLTAGE = 230  # Single-phase European supply

    # Local time used for weekday/hour bucketing of trips and charges
    TIMEZONE = os.environ.get('TIMEZONE', 'UTC')

    # Model training
    MODEL_RANDOM_SEED = int(os.environ.get('MODEL_RANDOM_SEED', 42))

    # API / cache configuration
    FLASK_HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    FLASK_PORT = int(os.environ.get('FLASK_PORT', 8080))
    CACHE_TIMEOUT_SECONDS = int(os.environ.get('CACHE_TIMEOUT', 3600))

    # Background training queue
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    REDIS_QUEUE_DB = int(os.environ.get('REDIS_QUEUE_DB', 1))
    TRAINING_QUEUE = os.environ.get('TRAINING_QUEUE', 'ev-models')
    TRAINING_JOB_TIMEOUT = int(os.environ.get('TRAINING_JOB_TIMEOUT', 300))
