from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    backend: str = 'http'
    backend_base_url: str = 'http://localhost:3000'
    upload_path: str = '/upload'
    analyze_path: str = '/analyze'
    backend_timeout_ms: int = 30000
    serialize_operations: bool = True
    dummy_bucket_url: str = 'https://bucket.local'
    log_level: str = 'INFO'
    version: str = '1.0.0'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
