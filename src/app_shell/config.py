import logging
import os

from src.rules.models import Rules

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Operational configuration is incomplete."""


def validate_ops_rules(rules: Rules) -> None:
    """
    Validate operational requirements before startup.

    Raises:
        ConfigError: a required environment variable is missing, or the
            resend provider is selected without its API key
    """
    missing = [name for name in rules.ops.required_env if not os.environ.get(name)]
    if rules.email.provider == "resend" and not os.environ.get(rules.email.api_key_env):
        missing.append(rules.email.api_key_env)

    if missing:
        logger.critical("Missing required environment variables: %s", ", ".join(missing))
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    if not os.environ.get(rules.ops.cron_secret_env):
        logger.warning("%s is not set; the cron endpoint will reject every call", rules.ops.cron_secret_env)

    logger.info("Configuration validated")
