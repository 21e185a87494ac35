"""
RelayBot - Configuration Module
===============================

Environment configuration and runtime setting defaults.

DESIGN:
    Two layers live here:
    - Config: process settings loaded once from environment variables
      (tokens, group IDs, URLs). Singleton via get_config().
    - Runtime settings: texts, toggles and lists editable by the primary
      operator. These resolve store -> environment -> DEFAULT_SETTINGS
      through the pure resolve_setting() function.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Set


# =============================================================================
# Runtime Setting Defaults
# =============================================================================

DEFAULT_SETTINGS = {
    "welcome_msg": "Welcome! Please complete the verification before chatting.",
    "verif_q": (
        "Question: 1+1=?\n\n"
        "Hints:\n"
        "1. The correct answer is not \"2\".\n"
        "2. The answer is in the bot's bio."
    ),
    "verif_a": "3",
    "block_threshold": "5",
    "enable_image_forwarding": "true",
    "enable_link_forwarding": "true",
    "enable_text_forwarding": "true",
    "enable_channel_forwarding": "true",
    "enable_forward_forwarding": "true",
    "enable_audio_forwarding": "true",
    "enable_sticker_forwarding": "true",
    "enable_admin_receipt": "true",
    "authorized_admins": "[]",
    "block_keywords": "[]",
    "keyword_responses": "[]",
    "backup_group_id": "",
}
"""Compiled-in defaults for every runtime setting (all values are strings)."""

ENV_KEY_ALIASES = {
    "WELCOME_MSG": "WELCOME_MESSAGE",
    "VERIF_Q": "VERIFICATION_QUESTION",
    "VERIF_A": "VERIFICATION_ANSWER",
}


def env_key_for(key: str) -> str:
    """Environment variable name that can supply a default for a setting."""
    upper = key.upper()
    return ENV_KEY_ALIASES.get(upper, upper)


def resolve_setting(
    key: str,
    stored: Optional[str],
    environ: Mapping[str, str],
    defaults: Mapping[str, str] = DEFAULT_SETTINGS,
) -> str:
    """
    Resolve a runtime setting: stored value, then environment, then default.

    Args:
        key: Setting key (e.g. "welcome_msg").
        stored: Value persisted in the config store, None if absent.
        environ: Environment mapping (usually os.environ).
        defaults: Compiled-in defaults.

    Returns:
        The resolved string value ("" when nothing is known about the key).
    """
    if stored is not None:
        return stored
    env_value = environ.get(env_key_for(key))
    if env_value is not None:
        return env_value
    return defaults.get(key, "")


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Process configuration loaded from environment variables.

    Attributes:
        bot_token: Telegram bot token.
        admin_group_id: Staff supergroup (forum) where user threads live.
        admin_ids: Primary operator IDs; only these may edit runtime settings.
        public_url: Externally reachable base URL (for the verification page).
        turnstile_site_key: Public key embedded in the challenge page.
        turnstile_secret_key: Secret used to validate challenge tokens.
        db_path: SQLite file path.
        alert_chat_id: Optional chat receiving error alerts.
    """

    # -------------------------------------------------------------------------
    # Required
    # -------------------------------------------------------------------------

    bot_token: str
    admin_group_id: str

    # -------------------------------------------------------------------------
    # Optional
    # -------------------------------------------------------------------------

    admin_ids: Set[str] = field(default_factory=set)
    public_url: str = ""
    turnstile_site_key: Optional[str] = None
    turnstile_secret_key: Optional[str] = None
    db_path: str = "data/relay.db"
    alert_chat_id: Optional[str] = None

    def is_primary_admin(self, user_id) -> bool:
        """Check if a user is a primary operator."""
        return str(user_id) in self.admin_ids

    @property
    def verification_ready(self) -> bool:
        """True when the challenge page can be served and linked."""
        return bool(self.public_url and self.turnstile_site_key)


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_id_set(value: Optional[str]) -> Set[str]:
    """
    Parse a comma-separated ID list (ASCII or full-width commas).

    Args:
        value: String like "123,456" or "123，456".

    Returns:
        Set of trimmed, non-empty IDs.
    """
    if not value:
        return set()
    return {part.strip() for part in re.split(r"[,，]", value) if part.strip()}


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Returns:
        Validated Config object.

    Raises:
        ConfigValidationError: If any required variable is missing.
    """
    missing = []

    bot_token = os.getenv("BOT_TOKEN")
    if not bot_token:
        missing.append("BOT_TOKEN")

    admin_group_id = os.getenv("ADMIN_GROUP_ID")
    if not admin_group_id:
        missing.append("ADMIN_GROUP_ID")

    if missing:
        raise ConfigValidationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Config(
        bot_token=bot_token,
        admin_group_id=admin_group_id.strip(),
        admin_ids=_parse_id_set(os.getenv("ADMIN_IDS")),
        public_url=(os.getenv("PUBLIC_URL") or os.getenv("WORKER_URL") or "").rstrip("/"),
        turnstile_site_key=_optional(os.getenv("TURNSTILE_SITE_KEY")),
        turnstile_secret_key=_optional(os.getenv("TURNSTILE_SECRET_KEY")),
        db_path=os.getenv("RELAY_DB_PATH", "data/relay.db"),
        alert_chat_id=_optional(os.getenv("ALERT_CHAT_ID")),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global configuration (None forces a reload)."""
    global _config
    _config = config


def validate_and_log_config() -> Config:
    """
    Validate configuration and log a summary at startup.

    Raises:
        ConfigValidationError: If required configuration is missing.
    """
    from relaybot.core.logger import logger

    config = get_config()

    logger.tree("Configuration Loaded", [
        ("Staff Group", config.admin_group_id),
        ("Primary Operators", str(len(config.admin_ids))),
        ("Public URL", config.public_url or "Not set"),
        ("Challenge", "Configured" if config.turnstile_secret_key else "Not configured"),
        ("Database", config.db_path),
    ], emoji="⚙️")

    if not config.admin_ids:
        logger.warning("No ADMIN_IDS set - runtime settings menu is unreachable")
    if not config.verification_ready:
        logger.warning("PUBLIC_URL or TURNSTILE_SITE_KEY missing - users cannot pass verification")

    return config


__all__ = [
    "Config",
    "ConfigValidationError",
    "DEFAULT_SETTINGS",
    "env_key_for",
    "resolve_setting",
    "load_config",
    "get_config",
    "set_config",
    "validate_and_log_config",
]
