"""
Configuration management for the hardware polling engine.

Loads configuration from YAML files and environment variables.
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional
import yaml


@dataclass
class PollingConfig:
    """Poll cadence and depth policy."""
    
    interval_seconds: float = 0.95  # Nominal driver period
    min_poll_interval_ms: int = 750  # Throttle between started polls
    thorough_after_ms: int = 1000  # Staleness that forces a thorough poll
    estimate_memory_from_cpu: bool = True
    memory_estimate_offset: float = 5.0


@dataclass
class WatchdogConfig:
    """Stalled polling loop detection."""
    
    enabled: bool = True
    start_delay_seconds: float = 2.0
    tick_seconds: float = 1.0
    stall_factor: float = 1.5  # Multiple of polling.interval_seconds
    restart_cooldown_seconds: float = 10.0


@dataclass
class WarmupConfig:
    """Extra thorough scans after startup while slow sensor chips settle."""
    
    enabled: bool = True
    delay_seconds: float = 2.0
    scans: int = 3
    spacing_seconds: float = 1.0


@dataclass
class HardwareConfig:
    """Local hardware backend settings."""
    
    hwmon_root: str = "/sys/class/hwmon"
    nvidia_smi: bool = True
    nvidia_smi_timeout_seconds: float = 2.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration container."""
    
    polling: PollingConfig = field(default_factory=PollingConfig)
    watchdog: WatchdogConfig = field(default_factory=WatchdogConfig)
    warmup: WarmupConfig = field(default_factory=WarmupConfig)
    hardware: HardwareConfig = field(default_factory=HardwareConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    
    @property
    def stall_threshold_seconds(self) -> float:
        """Age of the last successful poll after which the loop counts as stalled."""
        return self.polling.interval_seconds * self.watchdog.stall_factor
    
    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path)
        if not config_path.exists():
            config = cls()
            config._apply_env_overrides()
            return config
        
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
        
        return cls._from_dict(data)
    
    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create config from dictionary."""
        config = cls()
        
        if "polling" in data:
            config.polling = PollingConfig(**data["polling"])
        
        if "watchdog" in data:
            config.watchdog = WatchdogConfig(**data["watchdog"])
        
        if "warmup" in data:
            config.warmup = WarmupConfig(**data["warmup"])
        
        if "hardware" in data:
            config.hardware = HardwareConfig(**data["hardware"])
        
        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])
        
        # Override with environment variables
        config._apply_env_overrides()
        
        return config
    
    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        if os.getenv("HWPOLL_INTERVAL"):
            self.polling.interval_seconds = float(os.getenv("HWPOLL_INTERVAL"))
        if os.getenv("HWPOLL_WATCHDOG_ENABLED"):
            self.watchdog.enabled = os.getenv("HWPOLL_WATCHDOG_ENABLED").lower() == "true"
        if os.getenv("HWPOLL_HWMON_ROOT"):
            self.hardware.hwmon_root = os.getenv("HWPOLL_HWMON_ROOT")
        
        # Logging
        if os.getenv("LOG_LEVEL"):
            self.logging.level = os.getenv("LOG_LEVEL")
    
    def to_dict(self) -> dict:
        return {
            "polling": asdict(self.polling),
            "watchdog": asdict(self.watchdog),
            "warmup": asdict(self.warmup),
            "hardware": asdict(self.hardware),
            "logging": asdict(self.logging),
        }
    
    def to_yaml(self, path: str):
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    # Check common locations
    candidates = [
        Path("config/hwpoll.yaml"),
        Path("hwpoll.yaml"),
        Path.home() / ".hwpoll" / "config.yaml",
        Path("/etc/hwpoll/config.yaml"),
    ]
    
    for path in candidates:
        if path.exists():
            return str(path)
    
    # Return the first candidate as default
    return str(candidates[0])
