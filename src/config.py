from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Marketplace backend
    api_base_url: str = "http://localhost:3000/api"
    asset_base_url: str = "http://localhost:3000/uploads/"
    api_token: str | None = None
    request_timeout_seconds: float = 60.0

    # Upload endpoint contract
    upload_field_name: str = "image"
    upload_scene: str = "secondhand"

    # Publish form limits
    max_slots: int = 6
    title_max_length: int = 30
    description_max_length: int = 500

    log_level: str = "INFO"
    log_domain_events: bool = True


settings = Settings()
