"""
Configuration for the traceroute graph engine.

Settings are read from a YAML file (under a top-level ``hopgraph`` key) or,
when no file is given, from ``HOPGRAPH_*`` environment variables. Every
setting has a default, so an empty environment yields a working config.

Example file::

    hopgraph:
      api_base_url: http://localhost:8080
      mode: full
      asn_mode: box
      palette: ["#8ecae6", "#90be6d"]
      layout:
        node_width: 150
        group_padding: 20
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from .grouping import DEFAULT_PALETTE
from .models import AsnMode, TracerouteMode
from .positioning import (
    GROUP_PADDING,
    HORIZONTAL_SPACING,
    NODE_HEIGHT,
    NODE_WIDTH,
    VERTICAL_SPACING,
    PositionCalculator,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOPGRAPH_"
LAYOUT_KEYS = (
    "node_width",
    "node_height",
    "horizontal_spacing",
    "vertical_spacing",
    "group_padding",
)


@dataclass
class EngineConfig:
    """Settings for fetching, grouping and laying out traceroute graphs."""

    api_base_url: str = "http://localhost:8080"
    mode: TracerouteMode = TracerouteMode.FULL
    asn_mode: AsnMode = AsnMode.BOX
    request_timeout: float = 10.0
    allow_partial: bool = False
    palette: List[str] = field(default_factory=lambda: list(DEFAULT_PALETTE))
    node_width: float = NODE_WIDTH
    node_height: float = NODE_HEIGHT
    horizontal_spacing: float = HORIZONTAL_SPACING
    vertical_spacing: float = VERTICAL_SPACING
    group_padding: float = GROUP_PADDING

    def __post_init__(self):
        # Raises ValueError for unknown modes
        self.mode = TracerouteMode(self.mode)
        self.asn_mode = AsnMode(self.asn_mode)
        if not self.palette:
            raise ValueError("palette must contain at least one color")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        values = dict(data)
        # Layout settings may be nested under "layout"
        values.update(values.pop("layout", None) or {})
        unknown = set(values) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in values.items() if k in known})

    @classmethod
    def from_file(cls, path: str) -> "EngineConfig":
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
        return cls.from_dict(document.get("hopgraph", document))

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "EngineConfig":
        environ = os.environ if environ is None else environ
        defaults = cls()
        values: Dict[str, Any] = {}

        def env(name: str) -> Optional[str]:
            return environ.get(f"{ENV_PREFIX}{name.upper()}")

        for name in ("api_base_url", "mode", "asn_mode"):
            if env(name) is not None:
                values[name] = env(name)
        if env("request_timeout") is not None:
            values["request_timeout"] = float(env("request_timeout"))
        if env("allow_partial") is not None:
            values["allow_partial"] = env("allow_partial").lower() in ("1", "true", "yes")
        if env("palette"):
            colors = env("palette").split(",")
            values["palette"] = [c.strip() for c in colors if c.strip()]
        for name in LAYOUT_KEYS:
            if env(name) is not None:
                values[name] = float(env(name))

        return replace_config(defaults, values)

    def position_calculator(self) -> PositionCalculator:
        return PositionCalculator(
            node_width=self.node_width,
            node_height=self.node_height,
            horizontal_spacing=self.horizontal_spacing,
            vertical_spacing=self.vertical_spacing,
            group_padding=self.group_padding,
        )


def replace_config(config: EngineConfig, values: Dict[str, Any]) -> EngineConfig:
    data = {f.name: getattr(config, f.name) for f in fields(config)}
    data.update(values)
    return EngineConfig(**data)


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load config from ``path`` when it exists, else from the environment."""
    if path and os.path.exists(path):
        logger.debug("Loading config from %s", path)
        return EngineConfig.from_file(path)
    if path:
        logger.warning("Config file %s not found, using environment", path)
    return EngineConfig.from_env()
