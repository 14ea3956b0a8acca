"""
Configuration for the fire grid core.

Settings live in a YAML file (see ``firegrid/configs/default.yaml``) and are
loaded into a FireGridConfig dataclass. Every field has a default, so an
empty or partial YAML file is valid.

Usage:
    config = FireGridConfig.from_yaml('configs/production.yaml')
    service = FireGridService(config)
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from firegrid.exceptions import ValidationError
from firegrid.models import BoundingBox

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "configs" / "default.yaml"

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Console logging for hosts and scripts embedding firegrid."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("firegrid").setLevel(level)


@dataclass
class FireGridConfig:
    """Configuration for grid generation, caching and aggregation."""

    # Coverage area ("global" region); Spain plus a margin by default
    coverage_bounds: Dict[str, float] = field(default_factory=lambda: {
        'north': 44.0, 'south': 35.8, 'east': 3.5, 'west': -9.5,
    })

    # (zoom threshold, resolution) steps; highest threshold <= zoom wins
    zoom_resolution_steps: List[List[float]] = field(default_factory=lambda: [[0, 6], [9, 7]])

    # Decimals kept when quantizing viewport cache keys
    viewport_precision: int = 2

    # Storage
    data_root: Optional[str] = None
    grid_storage: str = 'disk'  # 'disk' or 'memory'

    # Aggregation cache bound (LRU)
    aggregation_cache_size: int = 128

    # Fallback lattice scan
    lattice_step_fraction: float = 0.35
    lattice_max_samples: int = 2_000_000

    # Resolutions warmed by FireGridService.pregenerate()
    overview_resolutions: List[int] = field(default_factory=lambda: [5])

    # Applied by FireGridService.from_config via configure_logging
    log_level: str = 'INFO'

    def __post_init__(self):
        if self.grid_storage not in ('disk', 'memory'):
            raise ValidationError(f"grid_storage must be 'disk' or 'memory', got {self.grid_storage!r}")
        if self.aggregation_cache_size < 1:
            raise ValidationError("aggregation_cache_size must be >= 1")
        if self.viewport_precision < 0:
            raise ValidationError("viewport_precision must be >= 0")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ValidationError(f"Unknown log_level {self.log_level!r}")
        # Fails early on malformed bounds
        self.coverage_box()

    def coverage_box(self) -> BoundingBox:
        return BoundingBox.from_dict(self.coverage_bounds)

    @classmethod
    def from_dict(cls, config_data: Optional[Dict[str, Any]]) -> 'FireGridConfig':
        config_data = dict(config_data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {unknown}")
        return cls(**{k: v for k, v in config_data.items() if k in known})

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> 'FireGridConfig':
        """Load configuration from YAML file."""
        with open(yaml_path, 'r') as f:
            config_data = yaml.safe_load(f)
        return cls.from_dict(config_data)

    @classmethod
    def default(cls) -> 'FireGridConfig':
        """The packaged default configuration."""
        return cls.from_yaml(DEFAULT_CONFIG_PATH)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save_yaml(self, yaml_path: Union[str, Path]):
        """Save configuration to YAML file."""
        with open(yaml_path, 'w') as f:
            yaml.dump(self.to_dict(), f, indent=2, default_flow_style=False)
