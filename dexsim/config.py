"""
Configuration loading and validation for the DEX spread simulator.

Values come from a YAML file (optional), then environment variables
(``RPC_URL``, ``PRICE_CHECK_INTERVAL_SECONDS``, ``DASH_ENABLE``), then CLI
flags applied by the caller.
"""

import copy
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml

from arbwatch.exceptions import ConfigurationError

VENUE_KINDS = ("v2", "v3", "balancer", "chainlink", "quote")
QUOTE_PROTOCOLS = ("dodo", "bancor")

DEFAULT_PAIR = {
    "base": {
        "symbol": "WETH",
        "address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "decimals": 18,
    },
    "quote": {
        "symbol": "DAI",
        "address": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "decimals": 18,
    },
}

# Built-in WETH/DAI venue set on Ethereum mainnet
DEFAULT_VENUES = [
    {
        "name": "Uniswap V2",
        "kind": "v2",
        "factory": "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
        "fee_bps": 30,
    },
    {
        "name": "Uniswap V3",
        "kind": "v3",
        "address": "0xC2e9F25Be6257c210d7Adf0D4Cd6E3E881ba25f8",
        "fee_bps": 30,
    },
    {
        "name": "SushiSwap",
        "kind": "v2",
        "factory": "0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac",
        "fee_bps": 30,
    },
    {
        "name": "ShibaSwap",
        "kind": "v2",
        "factory": "0x115934131916C8b277DD010Ee02de363c09d037c",
        "fee_bps": 30,
    },
    {
        "name": "SakeSwap",
        "kind": "v2",
        "factory": "0x75e48C954594d64ef9613AeEF97Ad85370F13807",
        "fee_bps": 30,
    },
    {
        "name": "Balancer",
        "kind": "balancer",
        "pool_id": "0x0b09dea16768f0799065c475be02919503cb2a3500020000000000000000001a",
        "fee_bps": 25,
    },
    # Quote venues price from swap output, already net of their fee
    {
        "name": "DODO",
        "kind": "quote",
        "protocol": "dodo",
        "address": "0x8f8ef111b67c04eb1641f5ff19ee54cda062f163",
        "fee_bps": 0,
    },
    {
        "name": "Bancor",
        "kind": "quote",
        "protocol": "bancor",
        "address": "0xC6e7E708f46A23Ee9590b503F03BA3e2C67CaC13",
        "fee_bps": 0,
    },
    {
        "name": "Chainlink",
        "kind": "chainlink",
        "address": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
        "decimals": 8,
        "fee_bps": 0,
    },
]


class ConfigError(ConfigurationError):
    """Raised when config is invalid or missing required fields."""

    pass


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class DexSimConfig:
    """
    Parsed and validated configuration for the spread scanner and simulator.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint (required)
        poll_sec: Seconds between evaluation cycles
        once: If True, run a single cycle and exit
        threshold_pct: Minimum raw spread (%) reported by the detector
        top_n: Number of ranked opportunities kept per cycle
        use_block_cache: Reuse the previous snapshot while the block is unchanged
        pair: {"base": {...}, "quote": {...}} token metadata
        venues: List of venue configs (name, kind, address/factory/pool_id,
            protocol/via for quote venues, fee_bps)
        default_fee_bps: Fee for venues without fee_bps
        gas: Gas model settings
        retry: Adapter retry settings
        simulate: Enable the simulated ledger
        starting_balance: Initial simulated capital (quote units)
        duration_sec: Simulation length; None runs until interrupted
        haircut: Fraction of affordable size actually traded
        log_path: CSV trade log path
        dashboard_enabled / dashboard_host / dashboard_port: Dashboard server
    """

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Parse and validate config from dictionary.

        Raises:
            ConfigError: If required fields missing or invalid
        """
        self.rpc_url: str = self._get_required(config_dict, "rpc_url", str)
        if not self.rpc_url.startswith(("http://", "https://")):
            raise ConfigError(f"Invalid RPC URL format: {self.rpc_url}")

        self.poll_sec: float = self._positive(config_dict.get("poll_sec", 45), "poll_sec")
        self.once: bool = _as_bool(config_dict.get("once", False))

        self.threshold_pct: float = float(config_dict.get("threshold_pct", 0.0))
        if self.threshold_pct < 0:
            raise ConfigError(f"threshold_pct must be >= 0: {self.threshold_pct}")
        self.top_n: int = int(config_dict.get("top_n", 3))
        if self.top_n < 1:
            raise ConfigError(f"top_n must be >= 1: {self.top_n}")
        self.use_block_cache: bool = _as_bool(config_dict.get("use_block_cache", False))

        self.pair: Dict[str, Dict[str, Any]] = self._parse_pair(
            config_dict.get("pair", DEFAULT_PAIR)
        )

        fees = config_dict.get("fees", {}) or {}
        self.default_fee_bps: float = float(fees.get("default_fee_bps", 30))

        venues_raw = config_dict.get("venues")
        if venues_raw is None:
            venues_raw = copy.deepcopy(DEFAULT_VENUES)
        self.venues: List[Dict[str, Any]] = self._parse_venues(venues_raw)
        if not self.venues:
            raise ConfigError("At least one venue must be configured")

        self.gas: Dict[str, Any] = self._parse_gas(config_dict.get("gas", {}) or {})
        self.retry: Dict[str, Any] = self._parse_retry(config_dict.get("retry", {}) or {})

        sim = config_dict.get("simulation", {}) or {}
        self.simulate: bool = _as_bool(sim.get("enabled", False))
        self.starting_balance: float = self._positive(
            sim.get("starting_balance", 1000.0), "simulation.starting_balance"
        )
        duration = sim.get("duration_sec", 3600)
        self.duration_sec: Optional[float] = (
            None if duration is None else self._positive(duration, "simulation.duration_sec")
        )
        self.haircut: float = float(sim.get("haircut", 0.9))
        if not 0 < self.haircut <= 1:
            raise ConfigError(f"simulation.haircut must be in (0, 1]: {self.haircut}")
        self.log_path: str = str(sim.get("log_path", "logs/sim_trades.csv"))

        dash = config_dict.get("dashboard", {}) or {}
        self.dashboard_enabled: bool = _as_bool(dash.get("enabled", False))
        self.dashboard_host: str = str(dash.get("host", "127.0.0.1"))
        self.dashboard_port: int = int(dash.get("port", 3000))

    @staticmethod
    def _get_required(d: Dict, key: str, expected_type: type) -> Any:
        """Get required config field with type validation."""
        if key not in d or d[key] in (None, ""):
            raise ConfigError(f"Missing required config field: {key}")
        val = d[key]
        if not isinstance(val, expected_type):
            raise ConfigError(
                f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
            )
        return val

    @staticmethod
    def _positive(value: Any, key: str) -> float:
        try:
            num = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Config field '{key}' must be a number: {value!r}") from e
        if num <= 0:
            raise ConfigError(f"Config field '{key}' must be > 0: {num}")
        return num

    @staticmethod
    def _parse_pair(pair_raw: Any) -> Dict[str, Dict[str, Any]]:
        """Parse and validate base/quote token metadata."""
        if not isinstance(pair_raw, dict):
            raise ConfigError("pair config must be a dict")
        pair = {}
        for side in ("base", "quote"):
            info = pair_raw.get(side)
            if not isinstance(info, dict):
                raise ConfigError(f"pair.{side} must be a dict")
            for field in ("symbol", "address", "decimals"):
                if field not in info:
                    raise ConfigError(f"pair.{side} missing '{field}'")
            pair[side] = {
                "symbol": str(info["symbol"]),
                "address": str(info["address"]),
                "decimals": int(info["decimals"]),
            }
        return pair

    @staticmethod
    def _parse_venues(venues_raw: List[Any]) -> List[Dict[str, Any]]:
        """Parse and validate venue configs."""
        if not isinstance(venues_raw, list):
            raise ConfigError("venues must be a list")

        venues = []
        seen = set()
        for i, venue in enumerate(venues_raw):
            if not isinstance(venue, dict):
                raise ConfigError(f"Venue config {i} must be a dict")

            name = venue.get("name")
            if not name:
                raise ConfigError(f"Venue config {i} missing 'name'")
            if name in seen:
                raise ConfigError(f"Duplicate venue name '{name}'")
            seen.add(name)

            kind = venue.get("kind", "v2")
            if kind not in VENUE_KINDS:
                raise ConfigError(
                    f"Venue '{name}' has invalid kind '{kind}' "
                    f"(must be one of {', '.join(VENUE_KINDS)})"
                )

            if kind == "v2" and not (venue.get("address") or venue.get("factory")):
                raise ConfigError(f"Venue '{name}' needs 'address' or 'factory'")
            if kind == "v3" and not venue.get("address"):
                raise ConfigError(f"Venue '{name}' missing 'address'")
            if kind == "balancer" and not venue.get("pool_id"):
                raise ConfigError(f"Venue '{name}' missing 'pool_id'")
            if kind == "quote":
                if venue.get("protocol") not in QUOTE_PROTOCOLS:
                    raise ConfigError(
                        f"Venue '{name}' has invalid protocol '{venue.get('protocol')}' "
                        f"(must be one of {', '.join(QUOTE_PROTOCOLS)})"
                    )

            parsed = {
                "name": str(name),
                "kind": kind,
                "address": venue.get("address"),
                "factory": venue.get("factory"),
                "pool_id": venue.get("pool_id"),
                "vault": venue.get("vault"),
                "protocol": venue.get("protocol"),
                "via": venue.get("via"),
                "decimals": venue.get("decimals"),
                "fee_bps": venue.get("fee_bps"),
                "gas_units": venue.get("gas_units"),
                "enabled": _as_bool(venue.get("enabled", True)),
            }
            if parsed["fee_bps"] is not None:
                fee_bps = float(parsed["fee_bps"])
                if not 0 <= fee_bps < 10_000:
                    raise ConfigError(f"Venue '{name}' fee_bps must be in [0, 10000)")
                parsed["fee_bps"] = fee_bps
            venues.append(parsed)

        return [v for v in venues if v["enabled"]]

    @staticmethod
    def _parse_gas(gas_raw: Dict[str, Any]) -> Dict[str, Any]:
        fallback_gwei = gas_raw.get("fallback_gas_price_gwei")
        return {
            "default_units": int(gas_raw.get("default_units", 150_000)),
            "units": {str(k): int(v) for k, v in (gas_raw.get("units") or {}).items()},
            "fallback_eth_price": float(gas_raw.get("fallback_eth_price", 2500.0)),
            "fallback_gas_price_gwei": (
                None if fallback_gwei is None else float(fallback_gwei)
            ),
            "reference_venues": list(
                gas_raw.get("reference_venues", ["Uniswap V2", "Uniswap V3"])
            ),
            "price_ttl_sec": float(gas_raw.get("price_ttl_sec", 12.0)),
        }

    @staticmethod
    def _parse_retry(retry_raw: Dict[str, Any]) -> Dict[str, Any]:
        max_attempts = int(retry_raw.get("max_attempts", 3))
        backoff_sec = float(retry_raw.get("backoff_sec", 0.25))
        if max_attempts < 1:
            raise ConfigError(f"retry.max_attempts must be >= 1: {max_attempts}")
        if backoff_sec < 0:
            raise ConfigError(f"retry.backoff_sec must be >= 0: {backoff_sec}")
        return {"max_attempts": max_attempts, "backoff_sec": backoff_sec}

    def venue_fee_bps(self) -> Dict[str, float]:
        """Explicit per-venue fees (bps); venues without one use the default."""
        return {v["name"]: v["fee_bps"] for v in self.venues if v["fee_bps"] is not None}

    def venue_gas_units(self) -> Dict[str, int]:
        units = dict(self.gas["units"])
        for v in self.venues:
            if v["gas_units"] is not None:
                units[v["name"]] = int(v["gas_units"])
        return units

    def venue_names(self) -> List[str]:
        return [v["name"] for v in self.venues]


def apply_env_overrides(
    config_dict: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Overlay supported environment variables on a raw config dict.

    Invalid numeric values are ignored so a stray env var cannot mask a
    valid config file value.
    """
    environ = os.environ if environ is None else environ
    merged = dict(config_dict)

    if environ.get("RPC_URL"):
        merged["rpc_url"] = environ["RPC_URL"]

    interval = environ.get("PRICE_CHECK_INTERVAL_SECONDS")
    if interval:
        try:
            value = int(interval)
            if value > 0:
                merged["poll_sec"] = value
        except ValueError:
            pass

    if environ.get("DASH_ENABLE"):
        dash = dict(merged.get("dashboard", {}) or {})
        dash["enabled"] = _as_bool(environ["DASH_ENABLE"])
        merged["dashboard"] = dash

    return merged


def load_config(
    config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> DexSimConfig:
    """
    Load and validate config from an optional YAML file plus the environment.

    Args:
        config_path: Path to config YAML file; None uses built-in defaults
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated DexSimConfig instance

    Raises:
        ConfigError: If config invalid or file not found
    """
    config_dict: Dict[str, Any] = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError("Config file must contain a YAML dictionary")
        config_dict = loaded

    return DexSimConfig(apply_env_overrides(config_dict, environ))
