# spin_harvester/infrastructure/config/settings.py
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


DEFAULT_CATALOG_PATH = "spin_harvester/application/config/games/pg.yaml"


@dataclass(frozen=True)
class HarvestSettings:
    """Numeric limits of a harvest run. Values come from the validated configuration."""
    normal_round_target: int = 3000
    bonus_round_target: int = 50
    retry_attempts: int = 10
    retry_delay_ms: int = 1000
    inter_round_delay_ms: int = 200
    log_interval: int = 20
    concurrent_games: int = 10
    concurrent_per_game: int = 1
    max_spins_per_round: int = 500
    rtp_control: Optional[int] = None

    @property
    def retry_delay(self) -> float:
        return self.retry_delay_ms / 1000.0

    @property
    def inter_round_delay(self) -> float:
        return self.inter_round_delay_ms / 1000.0


@dataclass(frozen=True)
class TransportSettings:
    base_url: str = "https://api.example.com"
    timeout_seconds: float = 15.0
    work_key: str = "0_C"
    rtp_path: str = "/api/SetDemoPlayerRTP"
    operator_token: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationSettings:
    max_report_entries: int = 50
    report_dir: Optional[str] = None


@dataclass(frozen=True)
class AppSettings:
    harvest: HarvestSettings
    transport: TransportSettings
    validation: ValidationSettings
    archive_dir: str = "assets/pg"
    catalog_path: str = DEFAULT_CATALOG_PATH
    logging: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AppSettings":
        """Build settings from a configuration already validated with schema defaults."""
        return cls(
            harvest=HarvestSettings(**config.get("harvest", {})),
            transport=TransportSettings(**config.get("transport", {})),
            validation=ValidationSettings(**config.get("validation", {})),
            archive_dir=config.get("archive", {}).get("base_dir", "assets/pg"),
            catalog_path=config.get("catalog", {}).get("path", DEFAULT_CATALOG_PATH),
            logging=config.get("logging", {}),
        )
