from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("qbo-batch-importer", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # QuickBooks Online REST API
    qbo_environment: Literal["sandbox", "production"] = Field("sandbox", alias="QBO_ENVIRONMENT")
    qbo_sandbox_base_url: str = Field("https://sandbox-quickbooks.api.intuit.com", alias="QBO_SANDBOX_BASE_URL")
    qbo_production_base_url: str = Field("https://quickbooks.api.intuit.com", alias="QBO_PRODUCTION_BASE_URL")
    qbo_minor_version: str = Field("70", alias="QBO_MINOR_VERSION")
    qbo_request_timeout: float = Field(30.0, alias="QBO_REQUEST_TIMEOUT")

    # Demo mode: run the pipeline against the in-memory accounting gateway
    qbo_use_in_memory: bool = Field(False, alias="QBO_USE_IN_MEMORY")

    # Invoice defaults (custom fields must be defined in the QBO UI first)
    qbo_point_of_contact_field_id: str = Field("1", alias="QBO_POINT_OF_CONTACT_FIELD_ID")
    qbo_invoice_item_id: str = Field("1", alias="QBO_INVOICE_ITEM_ID")
    qbo_fallback_expense_account_id: str = Field("1", alias="QBO_FALLBACK_EXPENSE_ACCOUNT_ID")

    # Rate-limit retry policy
    retry_max_retries: int = Field(3, alias="RETRY_MAX_RETRIES")
    retry_base_delay_ms: int = Field(1000, alias="RETRY_BASE_DELAY_MS")
    retry_rate_limit_code: str = Field("3200", alias="RETRY_RATE_LIMIT_CODE")

    # Processing defaults
    default_currency: str = Field("USD", alias="DEFAULT_CURRENCY")

    # Idempotency store (empty = in-memory, scoped to one processing run)
    idempotency_db_path: str | None = Field(default=None, alias="IDEMPOTENCY_DB_PATH")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    # Azure Service Bus (optional, bill group events)
    servicebus_connection_string: str | None = Field(default=None, alias="SERVICEBUS_CONNECTION_STRING")
    servicebus_entity_name: str = Field("bill-events", alias="SERVICEBUS_ENTITY_NAME")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

settings = Settings()
