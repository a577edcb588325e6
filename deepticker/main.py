"""Process entry point: ``deepticker`` console script and ``uvicorn deepticker.main:app``."""
import logging
import sys

import uvicorn

from deepticker.api.routes import create_app
from deepticker.config.secrets import SettingsSecretStore
from deepticker.config.settings import Settings, settings


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def _startup_summary(config: Settings) -> dict:
    keys = SettingsSecretStore(config)
    return {
        "provider_priority": config.provider_priority,
        "search_provider_priority": config.search_provider_priority,
        "keys_configured": sorted(p for p in ("alpha_vantage", "rapidapi") if keys.get_api_key(p)),
        "durable_cache": bool(config.cache_database_url),
        "request_timeout_seconds": config.request_timeout_seconds,
    }


configure_logging(settings.log_level)
logger = logging.getLogger(__name__)
app = create_app(app_settings=settings)


def main():
    logger.info(f"Serving {settings.app_name} on {settings.host}:{settings.port}", extra=_startup_summary(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
