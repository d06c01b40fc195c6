# src/signal_alerts/config.py
from dataclasses import dataclass, asdict
import json
import os
from pathlib import Path
from typing import Optional, Dict, Any, Tuple

import yaml
from dotenv import load_dotenv

# .env never overrides variables already set in the process environment
load_dotenv(override=False)

DEFAULT_CHANNELS = "email,telegram"
# Telegram alerts go to the top tier only; set TELEGRAM_TIERS= (empty) to open them to all
DEFAULT_TELEGRAM_TIERS = "professional"


def _env_list(name: str, default: str = "") -> Tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    # -------- Storage ----------
    db_path: str                = os.getenv("ALERTS_DB_PATH", "data/state/signal_alerts.db")
    store_timeout: float        = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

    # -------- Relay ------------
    email_relay_url: str        = os.getenv("EMAIL_RELAY_URL", "")
    telegram_relay_url: str     = os.getenv("TELEGRAM_RELAY_URL", "")
    relay_timeout: float        = float(os.getenv("RELAY_TIMEOUT_SECONDS", "10"))
    relay_timezone: str         = os.getenv("RELAY_TIMEZONE", "UTC")

    # -------- Trigger ----------
    signals_table: str          = os.getenv("SIGNALS_TABLE", "trading_signals")

    # -------- Eligibility ------
    channels: Tuple[str, ...]   = _env_list("ALERT_CHANNELS", DEFAULT_CHANNELS)
    default_max_alerts_per_day: int = int(os.getenv("DEFAULT_MAX_ALERTS_PER_DAY", "10"))
    eligibility_workers: int    = int(os.getenv("ELIGIBILITY_WORKERS", "8"))
    telegram_tiers: Tuple[str, ...] = _env_list("TELEGRAM_TIERS", DEFAULT_TELEGRAM_TIERS)

    # -------- Runtime ----------
    log_level: str              = os.getenv("LOG_LEVEL", "INFO")
    port: int                   = int(os.getenv("PORT", "8080"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def relay_urls(self) -> Dict[str, str]:
        """Relay endpoint per channel; channels without a URL are left out."""
        urls = {"email": self.email_relay_url, "telegram": self.telegram_relay_url}
        return {ch: url for ch, url in urls.items() if url and ch in self.channels}

    def channel_tiers(self) -> Dict[str, Tuple[str, ...]]:
        return {"telegram": self.telegram_tiers} if self.telegram_tiers else {}

    @staticmethod
    def from_overrides(**kwargs) -> "Settings":
        """
        Build Settings and apply runtime overrides (e.g., parsed CLI flags).
        Only keys that match fields will be overridden.
        """
        base = Settings()
        current = base.to_dict()
        current.update({k: v for k, v in kwargs.items() if k in current and v is not None})
        for key in ("channels", "telegram_tiers"):
            if isinstance(current[key], str):
                current[key] = tuple(p.strip() for p in current[key].split(",") if p.strip())
            else:
                current[key] = tuple(current[key])
        return Settings(**current)  # type: ignore[arg-type]


def load_config(config_path: Optional[str] = None, **overrides) -> Settings:
    """
    Build Settings from the environment plus an optional YAML/JSON file.

    The file may hold the keys at top level or under an ``alerts:`` block.
    Keyword overrides win over the file.
    """
    file_values: Dict[str, Any] = {}
    if config_path:
        config_file = Path(config_path)
        if config_file.suffix in (".yaml", ".yml"):
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
        elif config_file.suffix == ".json":
            with open(config_file) as f:
                data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {config_file.suffix}")
        file_values = data.get("alerts", data)

    file_values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.from_overrides(**file_values)
