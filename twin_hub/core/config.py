"""
Application configuration for Twin Sensor Hub.

Provides environment-aware settings with conservative defaults. Detector limits,
buffer sizes and rule thresholds live here to avoid hard-coded "magic numbers".
Runtime-tunable alerting thresholds are in twin_hub.anomaly.config.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaselineSettings(BaseModel):
	"""
	Configuration for baseline estimation.

	Notes:
	- min_samples: history must hold MORE than this many readings before seeding.
	- history_window: trailing readings used to compute a baseline.
	- history_capacity: readings kept per sensor type.
	"""

	min_samples: int = Field(100, ge=1)
	history_window: int = Field(300, ge=1)
	history_capacity: int = Field(1000, ge=1)


class BufferSettings(BaseModel):
	"""
	Recent-sample buffer used by the density scorers.
	"""

	recent_capacity: int = Field(50, ge=1)
	min_recent_samples: int = Field(5, ge=1)


class DetectorSettings(BaseModel):
	"""
	Statistical and density detector parameters.

	Notes:
	- zscore_threshold: deviation (in std units) at which the z component saturates.
	- iqr_multiplier: fences sit at Q1 - m*IQR and Q3 + m*IQR.
	- lof_neighbors: k used by the LOF approximation.
	- *_floor: a scorer only proposes a candidate above this score.
	"""

	zscore_threshold: float = Field(2.5, gt=0.0)
	iqr_multiplier: float = Field(3.0, gt=0.0)
	lof_neighbors: int = Field(5, ge=1)
	statistical_floor: float = Field(0.5, ge=0.0, le=1.0)
	isolation_floor: float = Field(0.6, ge=0.0, le=1.0)
	lof_floor: float = Field(0.5, ge=0.0, le=1.0)


class RuleThresholds(BaseModel):
	"""
	Fixed limits for the rule-based motion and performance detectors.

	Each limit is compared with a strict ">"; the *_scale values normalize the
	observed reading into a [0, 1] score.
	"""

	vibration_magnitude: float = Field(30.0, description="Accel magnitude (m/s^2)")
	vibration_scale: float = Field(50.0, gt=0.0)
	rotation_magnitude: float = Field(100.0, description="Gyro magnitude (deg/s)")
	rotation_scale: float = Field(200.0, gt=0.0)
	sudden_accel_magnitude: float = Field(15.0, gt=0.0)
	sudden_gyro_magnitude: float = Field(50.0, gt=0.0)
	cpu_percent: float = Field(80.0, ge=0.0, le=100.0)
	memory_percent: float = Field(85.0, ge=0.0, le=100.0)
	temperature_spike_c: float = Field(45.0)
	thermal_throttling_c: float = Field(50.0)
	temperature_scale: float = Field(80.0, gt=0.0)


class StoreSettings(BaseModel):
	"""
	Retention limits for the anomaly store.
	"""

	current_limit: int = Field(50, ge=1)
	recent_limit: int = Field(100, ge=1)
	horizon_seconds: int = Field(3600, ge=1)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="TWIN_",
		env_file=".env",
		env_nested_delimiter="__",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	sample_rate_hz: int = Field(60, ge=1, description="Nominal sensor sample rate")

	baseline: BaselineSettings = BaselineSettings()
	buffers: BufferSettings = BufferSettings()
	detectors: DetectorSettings = DetectorSettings()
	rules: RuleThresholds = RuleThresholds()
	store: StoreSettings = StoreSettings()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
