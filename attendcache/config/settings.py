from pydantic_settings import BaseSettings
from dotenv import load_dotenv, find_dotenv
from os import getenv
from typing import Optional

_env_path = find_dotenv()  # locate a .env file in this folder or parent folders
if _env_path:
    load_dotenv(_env_path)


class Settings(BaseSettings):
    # Persistent cache blob
    CACHE_STORAGE_KEY: str = getenv('CACHE_STORAGE_KEY', 'app-data-cache')
    # one of: memory, file, sql
    CACHE_BACKEND: str = getenv('CACHE_BACKEND', 'memory')
    CACHE_FILE_PATH: str = getenv('CACHE_FILE_PATH', '.attendcache/app-data-cache.json')
    CACHE_DB_URL: str = getenv('CACHE_DB_URL', 'sqlite:///./attendcache.db')

    # Expiry, in seconds
    CACHE_DEFAULT_TTL_SECONDS: int = int(getenv('CACHE_DEFAULT_TTL_SECONDS', '3600'))
    CURSOR_FRESHNESS_SECONDS: int = int(getenv('CURSOR_FRESHNESS_SECONDS', '1800'))

    PAGE_SIZE: int = int(getenv('PAGE_SIZE', '10'))

    # Remote document store (optional)
    # Unset in environments where list views are fed by another data source.
    DOCUMENT_STORE_URL: Optional[str] = getenv('DOCUMENT_STORE_URL')
    DOCUMENT_STORE_API_KEY: Optional[str] = getenv('DOCUMENT_STORE_API_KEY')

    LOG_LEVEL: str = getenv('LOG_LEVEL', 'INFO')

settings = Settings()
