# collateral/config.py
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from collateral.prices import DEFAULT_TOKEN_DECIMALS, parse_decimals_overrides

ENV_FILE = "env/.env"

# ------------------------------------------------------------------ defaults
REST_ENDPOINT    = "https://lcd.osmosis.zone"
REDBANK_CONTRACT = "osmo1c3ljch9dfw5kf52nfwpxd2zmj2ese7agnx0p9tenkrryasrle5sqf3ftpg"
ACCOUNT_ADDRESS  = "osmo1p2lnskywgtmdszw4lyka8wu3mn925365djuc24"
POLL_INTERVAL    = 10   # seconds
RATIO_TOPIC      = "redbank-ratios"


@dataclass(frozen=True)
class Settings:
    rest_endpoint:      str = REST_ENDPOINT
    contract_address:   str = REDBANK_CONTRACT
    account_address:    str = ACCOUNT_ADDRESS
    poll_interval:      float = POLL_INTERVAL
    request_timeout:    Optional[float] = None   # None -> transport default
    token_decimals:     int = DEFAULT_TOKEN_DECIMALS
    decimals_overrides: Dict[str, int] = field(default_factory=dict)
    kafka_brokers:      List[str] = field(default_factory=list)
    ratio_topic:        str = RATIO_TOPIC

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError(f"POLL_INTERVAL must be positive, got {self.poll_interval}")
        if self.token_decimals < 0:
            raise ValueError(f"TOKEN_DECIMALS must be >= 0, got {self.token_decimals}")
        if not self.account_address:
            raise ValueError("ACCOUNT_ADDRESS must be set")


def load_settings(env_file: str = ENV_FILE, **overrides) -> Settings:
    """Read env/.env + the process environment once; keyword overrides win (CLI flags)."""
    load_dotenv(env_file)

    timeout = os.getenv("REQUEST_TIMEOUT")
    brokers = os.getenv("KAFKA_BROKERS", "")

    values = dict(
        rest_endpoint      = os.getenv("REST_ENDPOINT", REST_ENDPOINT).rstrip("/"),
        contract_address   = os.getenv("REDBANK_CONTRACT", REDBANK_CONTRACT),
        account_address    = os.getenv("ACCOUNT_ADDRESS", ACCOUNT_ADDRESS),
        poll_interval      = float(os.getenv("POLL_INTERVAL", str(POLL_INTERVAL))),
        request_timeout    = float(timeout) if timeout else None,
        token_decimals     = int(os.getenv("TOKEN_DECIMALS", str(DEFAULT_TOKEN_DECIMALS))),
        decimals_overrides = parse_decimals_overrides(os.getenv("DECIMALS_OVERRIDES", "")),
        kafka_brokers      = [b.strip() for b in brokers.split(",") if b.strip()],
        ratio_topic        = os.getenv("RATIO_TOPIC", RATIO_TOPIC),
    )
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
