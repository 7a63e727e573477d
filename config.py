"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'crm')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'crm')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'crm')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Public base URL used in romaneio QR deep links
    APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:5000').rstrip('/')
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'Minha Empresa')

    # Object Storage Configuration (MinIO/S3)
    S3_ENDPOINT = os.getenv('S3_ENDPOINT', 'http://minio:9000')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY', 'minioadmin')
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY', 'minioadmin')
    S3_BUCKET = os.getenv('S3_BUCKET', 'uploads')
    S3_REGION = os.getenv('S3_REGION', 'us-east-1')
    S3_PUBLIC_URL = os.getenv('S3_PUBLIC_URL', 'http://localhost:9000')

    # Upload constraints (payment proofs and invoices)
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 5 * 1024 * 1024))  # 5MB
    ALLOWED_MIME_TYPES = {
        'image/jpeg',
        'image/png',
        'image/webp',
        'application/pdf',
        'application/xml',
        'text/xml',
    }

    # Redis (conversation context of the WhatsApp assistant)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CONVERSATION_STORE_ENABLED = os.getenv('CONVERSATION_STORE_ENABLED', 'true').lower() == 'true'
    CONVERSATION_TTL = int(os.getenv('CONVERSATION_TTL', '86400'))  # seconds
    CONVERSATION_HISTORY_LIMIT = int(os.getenv('CONVERSATION_HISTORY_LIMIT', '20'))
    CONVERSATION_PROMPT_WINDOW = int(os.getenv('CONVERSATION_PROMPT_WINDOW', '10'))
    CONVERSATION_KEY_PREFIX = os.getenv('CONVERSATION_KEY_PREFIX', 'crm')

    # Z-API (WhatsApp gateway)
    ZAPI_BASE_URL = os.getenv('ZAPI_BASE_URL', 'https://api.z-api.io')
    ZAPI_INSTANCE_ID = os.getenv('ZAPI_INSTANCE_ID')
    ZAPI_TOKEN = os.getenv('ZAPI_TOKEN')
    ZAPI_CLIENT_TOKEN = os.getenv('ZAPI_CLIENT_TOKEN')
    ZAPI_WEBHOOK_TOKEN = os.getenv('ZAPI_WEBHOOK_TOKEN')

    # WhatsApp instance connection polling (seconds / attempts)
    WHATSAPP_STATUS_POLL_SECONDS = int(os.getenv('WHATSAPP_STATUS_POLL_SECONDS', '8'))
    WHATSAPP_QR_REFRESH_SECONDS = int(os.getenv('WHATSAPP_QR_REFRESH_SECONDS', '35'))
    WHATSAPP_QR_MAX_ATTEMPTS = int(os.getenv('WHATSAPP_QR_MAX_ATTEMPTS', '3'))

    # LLM gateway (OpenAI-compatible chat completions)
    AI_GATEWAY_URL = os.getenv('AI_GATEWAY_URL', 'https://ai.gateway.lovable.dev/v1/chat/completions')
    AI_API_KEY = os.getenv('AI_API_KEY')
    AI_MODEL = os.getenv('AI_MODEL', 'google/gemini-2.5-flash')
    AI_TIMEOUT = int(os.getenv('AI_TIMEOUT', '30'))

    # Observability
    SENTRY_DSN = os.getenv('SENTRY_DSN')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    WTF_CSRF_ENABLED = False
    CONVERSATION_STORE_ENABLED = False
    APP_BASE_URL = 'https://crm.example.com'
    ZAPI_INSTANCE_ID = 'test-instance'
    ZAPI_TOKEN = 'test-token'
    ZAPI_CLIENT_TOKEN = 'client-token'
    ZAPI_WEBHOOK_TOKEN = None
    AI_API_KEY = 'test-key'
    SENTRY_DSN = None
