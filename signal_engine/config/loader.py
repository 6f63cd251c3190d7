"""
Per-symbol engine configuration.

Parameters resolve in three tiers, later tiers winning:

1. Global defaults from :mod:`signal_engine.config.defaults`
2. The symbol's block in ``config/symbols.yaml``
3. Overrides passed by the caller for a single scan or backtest
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .defaults import EngineConfig, get_default_config
from .overrides import apply_overrides
from .validation import ConfigValidator, ValidationError

SYMBOLS_FILE = "symbols.yaml"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into parameter groups."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class ConfigLoader:
    """Resolves an EngineConfig for each scanned symbol."""

    config_dir: Path
    defaults: EngineConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Loader over ``config_dir``, defaulting to the repository's ``config/``."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"
        return cls(config_dir=config_dir, defaults=get_default_config())

    def _symbol_blocks(self) -> dict[str, Any]:
        path = self.config_dir / SYMBOLS_FILE
        if not path.exists():
            return {}
        with open(path) as f:
            document = yaml.safe_load(f) or {}
        return document.get("symbols") or {}  # type: ignore[no-any-return]

    def configured_symbols(self) -> list[str]:
        """Symbols that carry overrides, in file order."""
        return list(self._symbol_blocks())

    def load_symbol_config(self, symbol: str) -> dict[str, Any]:
        """Raw override block for ``symbol``; empty when it has none."""
        return self._symbol_blocks().get(symbol) or {}  # type: ignore[no-any-return]

    def merge_config(
        self,
        symbol: str,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Nested dictionary of every parameter group with all tiers applied.

        Args:
            symbol: Symbol whose overrides apply
            overrides: Per-call overrides keyed by parameter group

        Returns:
            Plain dictionary suitable for ConfigValidator
        """
        config = _deep_merge(asdict(self.defaults), self.load_symbol_config(symbol))
        if overrides:
            config = _deep_merge(config, overrides)
        return config

    def build_config(
        self,
        symbol: str,
        overrides: Optional[dict[str, Any]] = None
    ) -> EngineConfig:
        """
        Typed configuration for ``symbol``.

        Raises:
            ValueError: An override names a parameter that does not exist
        """
        merged = self.merge_config(symbol, overrides)
        groups = {
            group.name: apply_overrides(getattr(self.defaults, group.name), merged.get(group.name, {}))
            for group in fields(self.defaults)
        }
        return EngineConfig(**groups)

    def validate(self, symbol: str, overrides: Optional[dict[str, Any]] = None) -> list[ValidationError]:
        """Range and type problems in the merged configuration for ``symbol``."""
        return ConfigValidator.validate_config(self.merge_config(symbol, overrides))
