from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Security
    RACEBIB_SECRET_KEY: str = "dev-secret-change-me"

    # Database
    RACEBIB_DB_URL: str = "sqlite:///./racebib.db"

    # Xendit
    XENDIT_SECRET_KEY: str = ""
    XENDIT_CALLBACK_TOKEN: str = ""
    XENDIT_API_URL: str = "https://api.xendit.co"
    XENDIT_TIMEOUT_SECONDS: float = 10.0
    INVOICE_DURATION_SECONDS: int = 86400
    INVOICE_CURRENCY: str = "PHP"
    PUBLIC_BASE_URL: str = "http://localhost:3000"

    # Bibs: "counter" | "recount"
    BIB_ALLOCATION_MODE: str = "counter"

    # Only the registration owner or an admin may trigger a sync
    SYNC_REQUIRE_AUTH: bool = False

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
