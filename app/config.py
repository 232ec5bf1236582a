from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Hatvoni Insider"
    DATABASE_URL: str = "sqlite:///./hatvoni.db"
    LOG_LEVEL: str = "INFO"

    # Auth
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    # Uploaded files (documents, evidence, customer photos, delivery documents)
    UPLOAD_DIR: str = "./uploads"

    # Base URL for links to uploaded files (set to your domain in production)
    BASE_URL: str = "http://localhost:8000"

    # Orders: completed orders auto-lock after this many hours,
    # a manual lock can be undone for this many days
    ORDER_AUTO_LOCK_HOURS: int = 48
    ORDER_UNLOCK_WINDOW_DAYS: int = 7

    LOW_STOCK_THRESHOLD: float = 5.0

    # Seller details printed on invoices
    SELLER_NAME: str = "Hatvoni"
    SELLER_ADDRESS: str = ""
    SELLER_PHONE: str = ""
    SELLER_EMAIL: str = ""
    SELLER_GSTIN: str = ""

    model_config = {"env_file": ".env"}


settings = Settings()
