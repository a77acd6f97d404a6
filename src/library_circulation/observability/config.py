"""Logfire settings, read from the process environment."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilityConfig(BaseSettings):
    """
    Where circulation traces go.

    Environment names follow Logfire's own (LOGFIRE_TOKEN, LOGFIRE_SEND) so an
    existing Logfire setup works unchanged. Fields can also be passed by name,
    which is how tests switch instrumentation off.
    """

    model_config = SettingsConfigDict(populate_by_name=True, case_sensitive=False, extra="ignore")

    service_name: str = "library-circulation-mcp"
    token: str = Field(default="", validation_alias="LOGFIRE_TOKEN")
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    enabled: bool = Field(default=True, validation_alias="LOGFIRE_ENABLED")
    console_output: bool = Field(default=False, validation_alias="LOGFIRE_CONSOLE")
    send_to_logfire: bool = Field(default=False, validation_alias="LOGFIRE_SEND")
