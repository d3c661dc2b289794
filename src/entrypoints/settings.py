from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str

    SKYDROPX_BASE_URL: str = "https://app.skydropx.com"
    SKYDROPX_API_KEY: str
    SKYDROPX_MIN_BILLABLE_WEIGHT_G: int = 1000

    # Warehouse the parcels leave from
    SHIPPING_ORIGIN_NAME: str = "Depósito Dental Noriega"
    SHIPPING_ORIGIN_POSTAL_CODE: str
    SHIPPING_ORIGIN_STATE: str
    SHIPPING_ORIGIN_CITY: str
    SHIPPING_ORIGIN_COUNTRY: str = "MX"
    SHIPPING_ORIGIN_ADDRESS1: str = ""
    SHIPPING_ORIGIN_ADDRESS2: str | None = None
    SHIPPING_ORIGIN_AREA_LEVEL3: str | None = None
    SHIPPING_ORIGIN_PHONE: str | None = None
    SHIPPING_ORIGIN_EMAIL: str | None = None

    DEFAULT_ITEM_WEIGHT_G: int = 100
    METADATA_WRITE_ATTEMPTS: int = 3
    LOG_LEVEL: str = "INFO"


config = Config()  # type: ignore[call-arg]
