from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "nexus"
    environment: str = "local"
    debug: bool = True

    mongo_host: str = "localhost"
    mongo_port: int = 27017
    mongo_db: str = "nexus"
    mongo_password: str | None = None
    mongo_user: str | None = None
    mongo_srv: bool = False

    jwt_algorithm: str = "HS256"
    jwt_secret_key: str = "very-secret-key"
    token_expires_days: int = 7
    bcrypt_rounds: int = 12

    otp_expires_minutes: int = 10
    max_login_attempts: int = 5
    lock_minutes: int = 120

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    mail_from: str = "noreply@pixelforge.com"
    mail_from_name: str = "PixelForge Nexus"
    frontend_url: str = "http://localhost:3000"

    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(env_file=(".env",), case_sensitive=False)

    @property
    def mongo_uri(self) -> str:
        auth = ""
        if self.mongo_user and self.mongo_password:
            auth = f"{self.mongo_user}:{self.mongo_password}@"
        if self.mongo_srv:
            return f"mongodb+srv://{auth}{self.mongo_host}/{self.mongo_db}?retryWrites=true&w=majority"
        return f"mongodb://{auth}{self.mongo_host}:{self.mongo_port}/{self.mongo_db}"


settings = Settings()
