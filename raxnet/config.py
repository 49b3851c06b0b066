from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "data/raxnet.db"
    host: str = "0.0.0.0"
    port: int = 2022
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 7 * 24 * 60
    initial_coin_balance: int = 0
    admin_email: str | None = None
    admin_password: str | None = None
    admin_full_name: str = "Administrator"
    auto_verify_note: str = "Automatically verified via API"
    rate_limit_enabled: bool = True
    rate_limit_auth: str = "10/minute"
    rate_limit_write: str = "60/minute"
    rate_limit_read: str = "120/minute"
    rate_limit_admin: str = "60/minute"
    recent_items_limit: int = 10
    admin_recent_activities_limit: int = 20
    growth_window_days: int = 30

    model_config = {"env_prefix": "RAXNET_"}


settings = Settings()
