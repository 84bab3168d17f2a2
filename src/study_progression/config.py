"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

DEFAULT_BONUS_TIERS = [50, 70, 90, 110, 130, 150, 200]
DEFAULT_WHEEL_SEGMENTS = [
    (700, 1.0),
    (50, 1.0),
    (150, 1.0),
    (0, 1.0),
    (100, 1.0),
    (300, 1.0),
    (25, 1.0),
    (50, 1.0),
]


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'level_curve' in data:
            curve = data['level_curve']
            flattened['max_level'] = curve.get('max_level')
            flattened['level_base_increment'] = curve.get('base_increment')
            flattened['level_first_growth'] = curve.get('first_growth')
            flattened['level_growth'] = curve.get('growth')
        if 'streak' in data:
            flattened['streak_bonus_tiers'] = data['streak'].get('bonus_tiers')
        if 'reward_wheel' in data:
            wheel = data['reward_wheel']
            flattened['login_streak_threshold'] = wheel.get('login_streak_threshold')
            segments = wheel.get('segments')
            if segments:
                flattened['wheel_segments'] = [
                    (seg['xp'], seg.get('weight', 1.0)) for seg in segments
                ]
        if 'storage' in data:
            flattened['save_max_attempts'] = data['storage'].get('save_max_attempts')
        if 'clock' in data:
            flattened['timezone'] = data['clock'].get('timezone')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Progression settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_prefix="PROGRESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Level curve
    max_level: int = Field(default=50, ge=1)
    level_base_increment: int = Field(default=500, gt=0)
    level_first_growth: int = Field(default=300, ge=0)
    level_growth: int = Field(default=400, ge=0)

    # Streak
    streak_bonus_tiers: list[int] = Field(default_factory=lambda: list(DEFAULT_BONUS_TIERS))

    # Reward wheel
    login_streak_threshold: int = Field(default=3, ge=1)
    wheel_segments: list[tuple[int, float]] = Field(
        default_factory=lambda: list(DEFAULT_WHEEL_SEGMENTS)
    )

    # Clock
    timezone: str = Field(default="UTC")

    # Storage
    save_max_attempts: int = Field(default=3, ge=1)

    # Logging
    log_json: bool = Field(default=False)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def profiles_dir(self) -> Path:
        d = self.project_root / "data" / "profiles"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
