from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResumableSettings(BaseSettings):
    STORAGE_URL: str = "."
    TEMP_FOLDER: str = "tmp"
    UPLOAD_FOLDER: str = "uploads"
    PARAM_PREFIX: str = "resumable"
    DEBUG: bool = False

    model_config = SettingsConfigDict(env_prefix="RESUMABLE_", env_file=".env")


@lru_cache()  # storage and engine are built from the same settings object
def get_settings() -> ResumableSettings:
    return ResumableSettings()
