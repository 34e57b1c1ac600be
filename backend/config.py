import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    """
    Read an integer setting, falling back to default on junk values.

    A bad value must not keep the dashboard from starting, so it is logged
    and replaced rather than raised.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logger.warning(f"{name}={value} below minimum {minimum}, using default {default}")
        return default
    return value


@dataclass(frozen=True)
class Settings:
    """Upstream and pipeline settings for the service layer."""

    # Appwrite (document database)
    appwrite_endpoint: str
    appwrite_project_id: str
    appwrite_database_id: str
    appwrite_api_key: str
    appwrite_users_collection_id: str

    # Directus (content API)
    directus_url: str
    directus_wards_collection: str
    directus_councillors_collection: str
    directus_municipalities_collection: str
    directus_interested_wards_collection: str
    directus_interested_councillors_collection: str

    # Pagination guardrails
    page_limit: int
    pagination_max_attempts: int
    pagination_max_offset: int
    directus_max_pages: int

    # HTTP
    http_timeout_seconds: int
    http_max_retries: int

    # Dashboard
    dashboard_cache_ttl_seconds: int
    top_wards_limit: int


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        appwrite_endpoint=os.getenv(
            'APPWRITE_ENDPOINT', 'https://appwrite-prod.cloud3.appetite.studio/v1'
        ),
        appwrite_project_id=os.getenv('APPWRITE_PROJECT_ID', '677b965c00367b19d8a1'),
        appwrite_database_id=os.getenv('APPWRITE_DATABASE_ID', '66681e3f0001445f43af'),
        appwrite_api_key=os.getenv('APPWRITE_API_KEY', ''),
        appwrite_users_collection_id=os.getenv(
            'APPWRITE_USERS_COLLECTION_ID', '68a6fb880033d2da5bd8'
        ),
        directus_url=os.getenv(
            'DIRECTUS_URL', 'https://enteward-directus.cloud3.appetite.studio'
        ),
        directus_wards_collection=os.getenv('DIRECTUS_WARDS_COLLECTION', 'wards'),
        directus_councillors_collection=os.getenv(
            'DIRECTUS_COUNCILLORS_COLLECTION', 'councillors'
        ),
        # Upstream collection name is misspelled
        directus_municipalities_collection=os.getenv(
            'DIRECTUS_MUNICIPALITIES_COLLECTION', 'Muncipality'
        ),
        directus_interested_wards_collection=os.getenv(
            'DIRECTUS_INTERESTED_WARDS_COLLECTION', 'interested_wards'
        ),
        directus_interested_councillors_collection=os.getenv(
            'DIRECTUS_INTERESTED_COUNCILLORS_COLLECTION', 'interested_councilors'
        ),
        page_limit=_env_int('PAGE_LIMIT', 100, minimum=1),
        pagination_max_attempts=_env_int('PAGINATION_MAX_ATTEMPTS', 100, minimum=1),
        pagination_max_offset=_env_int('PAGINATION_MAX_OFFSET', 10000),
        directus_max_pages=_env_int('DIRECTUS_MAX_PAGES', 50, minimum=1),
        http_timeout_seconds=_env_int('HTTP_TIMEOUT_SECONDS', 30, minimum=1),
        http_max_retries=_env_int('HTTP_MAX_RETRIES', 3, minimum=1),
        dashboard_cache_ttl_seconds=_env_int('DASHBOARD_CACHE_TTL_SECONDS', 300),
        top_wards_limit=_env_int('TOP_WARDS_LIMIT', 10, minimum=1),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings (read once). Call get_settings.cache_clear() to reload."""
    return load_settings()


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')
    DEBUG = os.getenv('FLASK_DEBUG', 'True').lower() == 'true'

    # Origins allowed to call /api/* (comma-separated, "*" for any)
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', '*').split(',')
        if origin.strip()
    ]
