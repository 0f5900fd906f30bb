from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Tunables for balance arithmetic and background feeds."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_", extra="ignore")

    tolerance: Decimal = Decimal("0.01")
    currency_symbol: str = "₹"
    listener_poll_interval: float = 2.0
    app_base_path: str = "/spend-circle"


ledger_settings = LedgerSettings()
