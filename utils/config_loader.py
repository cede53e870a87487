from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

from core.errors import ValidationError
from core.models import Venue

SUPPORTED_SYMBOLS = [
    "BTC-USD",
    "ETH-USD",
    "SOL-USD",
    "DOGE-USD",
    "ADA-USD",
    "DOT-USD",
]

SIMULATION_DELAY_PRESETS_MS = [0, 5000, 10000, 30000]

_VENUE_DEFAULTS: Dict[Venue, Dict[str, object]] = {
    Venue.OKX: {"throttle_ms": 500, "keepalive_interval_sec": None},
    Venue.BYBIT: {"throttle_ms": 500, "keepalive_interval_sec": 20.0},
    Venue.DERIBIT: {"throttle_ms": 1000, "keepalive_interval_sec": None},
}


@dataclass(slots=True)
class VenueConfig:
    throttle_ms: int
    keepalive_interval_sec: Optional[float] = None
    heartbeat_sec: Optional[float] = 30.0
    url: Optional[str] = None


@dataclass(slots=True)
class ServiceConfig:
    connect_debounce_ms: int = 500
    max_levels: int = 15
    default_throttle_ms: int = 1000
    default_venue: str = Venue.OKX.value
    default_symbol: str = "BTC-USD"
    simulation_delay_ms: int = 0


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass(slots=True)
class TelemetryConfig:
    enable_prometheus: bool = False
    port: int = 9000


@dataclass(slots=True)
class Settings:
    service: ServiceConfig
    venues: Dict[Venue, VenueConfig]
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)

    @classmethod
    def defaults(cls) -> "Settings":
        return ConfigLoader.parse_settings({})

    def venue_config(self, venue: Venue | None) -> VenueConfig:
        """Per-venue knobs; venues without an adapter fall back to service defaults."""
        if venue is not None and venue in self.venues:
            return self.venues[venue]
        return VenueConfig(
            throttle_ms=self.service.default_throttle_ms,
            keepalive_interval_sec=None,
            heartbeat_sec=None,
        )


class ConfigLoader:
    """Loads YAML settings for the orderbook service."""

    def __init__(self, base_path: Path | None = None):
        self.base_path = base_path or Path(__file__).resolve().parent.parent
        self._config_dir = self.base_path / "config"

    def _resolve_config_file(self, filename: str, fallbacks: list[str] | None = None) -> Path:
        candidates = [self._config_dir / filename]
        if fallbacks:
            candidates.extend(self._config_dir / name for name in fallbacks)
        for path in candidates:
            if path.exists():
                return path
        searched = ", ".join(str(path) for path in candidates)
        raise FileNotFoundError(f"missing config file; searched: {searched}")

    def load_settings(self) -> Settings:
        settings_path = self._resolve_config_file(
            "settings.yaml",
            ["settings.local.yaml", "settings.example.yaml"],
        )
        with settings_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        return self.parse_settings(raw)

    @staticmethod
    def parse_settings(raw: Dict[str, object]) -> Settings:
        service_cfg = raw.get("service") or {}
        venues_cfg = raw.get("venues") or {}
        logging_cfg = raw.get("logging") or {}
        telemetry_cfg = raw.get("telemetry") or {}

        service = ServiceConfig(
            connect_debounce_ms=int(service_cfg.get("connect_debounce_ms", 500)),
            max_levels=int(service_cfg.get("max_levels", 15)),
            default_throttle_ms=int(service_cfg.get("default_throttle_ms", 1000)),
            default_venue=str(service_cfg.get("default_venue", Venue.OKX.value)),
            default_symbol=str(service_cfg.get("default_symbol", "BTC-USD")),
            simulation_delay_ms=int(service_cfg.get("simulation_delay_ms", 0)),
        )
        if service.max_levels <= 0:
            raise ValidationError("service.max_levels must be positive")
        if service.connect_debounce_ms < 0 or service.default_throttle_ms <= 0:
            raise ValidationError("service timings must be positive")
        if Venue.parse(service.default_venue) is None:
            raise ValidationError(f"unknown default venue: {service.default_venue}")
        if service.default_symbol not in SUPPORTED_SYMBOLS:
            raise ValidationError(f"unsupported default symbol: {service.default_symbol}")
        if service.simulation_delay_ms not in SIMULATION_DELAY_PRESETS_MS:
            raise ValidationError(
                f"simulation_delay_ms must be one of {SIMULATION_DELAY_PRESETS_MS}"
            )

        overrides: Dict[Venue, Dict[str, object]] = {}
        for name, cfg in venues_cfg.items():
            venue = Venue.parse(name)
            if venue is None:
                raise ValidationError(f"unknown venue in settings: {name}")
            overrides[venue] = cfg or {}

        venues: Dict[Venue, VenueConfig] = {}
        for venue, defaults in _VENUE_DEFAULTS.items():
            cfg = overrides.get(venue, {})
            keepalive = cfg.get("keepalive_interval_sec", defaults["keepalive_interval_sec"])
            heartbeat = cfg.get("heartbeat_sec", 30.0)
            venues[venue] = VenueConfig(
                throttle_ms=int(cfg.get("throttle_ms", defaults["throttle_ms"])),
                keepalive_interval_sec=float(keepalive) if keepalive else None,
                heartbeat_sec=float(heartbeat) if heartbeat else None,
                url=cfg.get("url"),
            )
            if venues[venue].throttle_ms <= 0:
                raise ValidationError(f"{venue.value}.throttle_ms must be positive")

        log = LoggingConfig(
            level=str(logging_cfg.get("level", "INFO")).upper(),
            file=logging_cfg.get("file"),
        )
        telemetry = TelemetryConfig(
            enable_prometheus=bool(telemetry_cfg.get("enable_prometheus", False)),
            port=int(telemetry_cfg.get("port", 9000)),
        )
        return Settings(service=service, venues=venues, logging=log, telemetry=telemetry)
