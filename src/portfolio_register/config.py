"""Centralized configuration management for the portfolio register."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class VocabularyConfig(BaseModel):
    """Seed values for the controlled vocabularies of a new portfolio."""
    capabilities: list[str] = Field(
        default_factory=lambda: [
            "CAP-FINANCE",
            "CAP-HR",
            "CAP-SALES",
            "CAP-LOGISTICS",
            "CAP-IT",
            "CAP-MARKETING",
        ],
        description="Business capabilities applications are grouped by"
    )
    domains: list[str] = Field(
        default_factory=lambda: [
            "Commercial",
            "Finance",
            "General",
            "HR",
            "IT",
            "Supply Chain",
        ],
        description="Business domains used for the landscape view"
    )


class ImportConfig(BaseModel):
    """Defaults applied to imported rows with missing optional fields."""
    default_health: int = Field(50, ge=0, le=100, description="Health used when the Health column is unparseable")
    default_owner: str = Field("Unassigned", description="Owner used when the Owner column is empty")
    default_domain: str = Field("General", description="Domain used when the Domain column is empty")


class GraphConfig(BaseModel):
    """Layout constants for the dependency graph."""
    lane_x: dict[str, float] = Field(
        default_factory=lambda: {
            "CHANNEL": 0,
            "INTEGRATION": 400,
            "CORE": 800,
            "INFRA": 1200,
        },
        description="Horizontal position of each tier lane"
    )
    y_spacing: float = Field(180, description="Vertical distance between stacked nodes in a lane")
    y_offset: float = Field(50, description="Vertical position of the first node in a lane")


class AdvisoryConfig(BaseModel):
    """Settings for the external advisory (LLM) service."""
    model: str = Field("gemini-3-flash-preview", description="Model name sent to the service")
    timeout_seconds: float = Field(30.0, description="Request timeout for the advisory call")


class StoreConfig(BaseModel):
    """Behaviour of the in-memory portfolio store."""
    strict_not_found: bool = Field(
        False,
        description="Raise ApplicationNotFoundError on update/delete of unknown ids instead of ignoring"
    )


CONFIG_ENV_VAR = "PORTFOLIO_REGISTER_CONFIG"
CONFIG_FILE_NAMES = ("register-config.yaml", "register-config.yml")

DEFAULT_CONFIG_HEADER = """# Portfolio Register Configuration
#
# Picked up from --config, ${env}, ./{local}
# or ~/.config/portfolio-register/config.yaml, in that order.
# Any section left out keeps its defaults.

""".format(env=CONFIG_ENV_VAR, local=CONFIG_FILE_NAMES[0])


class RegisterConfig(BaseModel):
    """Complete configuration for the portfolio register."""
    vocabulary: VocabularyConfig = Field(default_factory=VocabularyConfig)
    imports: ImportConfig = Field(default_factory=ImportConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    advisory: AdvisoryConfig = Field(default_factory=AdvisoryConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "RegisterConfig":
        """Parse a YAML file; an empty file yields the defaults."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(yaml.safe_load(f) or {})

    def to_yaml(self) -> str:
        """Render as commented YAML."""
        body = yaml.dump(self.model_dump(), default_flow_style=False, sort_keys=False, allow_unicode=True)
        return DEFAULT_CONFIG_HEADER + body


_active: Optional[RegisterConfig] = None


def get_config() -> RegisterConfig:
    """Return the active configuration, activating the defaults on first use."""
    global _active
    if _active is None:
        _active = RegisterConfig()
    return _active


def activate_config(path: Optional[Path] = None) -> RegisterConfig:
    """Make the file at path, or the defaults when path is None, the active config.

    The previous configuration stays active if the file cannot be parsed.
    """
    global _active
    config = RegisterConfig() if path is None else RegisterConfig.from_yaml(path)
    _active = config
    return config


def discover_config(explicit: Optional[Path] = None) -> Optional[Path]:
    """Pick the configuration file to use.

    An explicit path always wins. Otherwise the first existing file among
    $PORTFOLIO_REGISTER_CONFIG, ./register-config.yaml, ./register-config.yml
    and ~/.config/portfolio-register/config.yaml is returned, or None.
    """
    if explicit is not None:
        return explicit

    candidates = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(Path(name) for name in CONFIG_FILE_NAMES)
    candidates.append(Path.home() / ".config" / "portfolio-register" / "config.yaml")

    return next((p for p in candidates if p.exists()), None)


def write_default_config(path: Path) -> None:
    """Write the default configuration as commented YAML."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(RegisterConfig().to_yaml(), encoding="utf-8")
