"""Application settings loaded from environment variables."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """whatsched configuration. All values come from environment variables."""

    # Web UI / API
    web_host: str = Field(default="0.0.0.0")
    web_port: int = Field(default=8080)
    open_browser: bool = Field(default=True)

    # WhatsApp HTTP bridge (WAHA-compatible)
    bridge_url: str = Field(default="http://localhost:3000")
    bridge_api_key: str = Field(default="")
    bridge_session: str = Field(default="default")

    # Delivery
    send_timeout_seconds: float = Field(default=30.0)

    # Pairing (QR authorization at startup)
    pairing_timeout_seconds: float = Field(default=300.0)
    pairing_poll_seconds: float = Field(default=3.0)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def ui_url(self) -> str:
        """Local URL of the web UI, for logs and the browser launcher."""
        return f"http://localhost:{self.web_port}"


settings = Settings()
