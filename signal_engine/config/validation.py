"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_indicator_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate indicator parameters."""
        errors = []

        # Validate periods
        for name in ("ema_fast", "ema_medium", "ema_slow", "ema_trend",
                     "rsi_period", "atr_period", "rvol_period", "lookback_bars"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))

        # Validate EMA ordering
        fast, medium, slow = params.get("ema_fast"), params.get("ema_medium"), params.get("ema_slow")
        if all(isinstance(v, int) for v in (fast, medium, slow)) and not fast < medium < slow:  # type: ignore[operator]
            errors.append(ValidationError(
                field="ema_fast",
                message="EMA periods must increase fast < medium < slow",
                value=(fast, medium, slow)
            ))

        # Validate mean reversion band
        low = params.get("mean_reversion_oversold")
        high = params.get("mean_reversion_overbought")
        for name, value in (("mean_reversion_oversold", low), ("mean_reversion_overbought", high)):
            if value is not None and (not _is_number(value) or value < 0 or value > 100):
                errors.append(ValidationError(
                    field=name,
                    message="Must be a number between 0 and 100",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_structure_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate structure-level detection parameters."""
        errors = []

        # Validate swing_lookback
        if "swing_lookback" in params:
            value = params["swing_lookback"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="swing_lookback",
                    message="Must be a positive integer",
                    value=value
                ))

        # Validate relative thresholds
        for name in ("liquidity_threshold", "confluence_threshold"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0 or value >= 1:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number below 1",
                        value=value
                    ))

        # Validate percentage thresholds
        for name in ("min_impulse_percent", "min_gap_percent", "nearby_distance_pct"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a non-negative number",
                        value=value
                    ))

        # Validate max_levels
        if "max_levels" in params:
            value = params["max_levels"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="max_levels",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_gamma_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate dealer positioning parameters."""
        errors = []

        # Validate counts
        for name in ("contract_multiplier", "max_dte", "min_strikes", "stale_after_minutes"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))

        # Validate fractions
        for name in ("strike_range_pct", "flip_acceptance_pct", "wall_oi_fraction"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0 or value > 1:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number between 0 and 1",
                        value=value
                    ))

        return errors

    @staticmethod
    def validate_stop_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate stop placement parameters."""
        errors = []

        # Validate distance bounds
        for name in ("max_stop_percent", "min_stop_percent"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0 or value > 100:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive percentage up to 100",
                        value=value
                    ))

        min_pct, max_pct = params.get("min_stop_percent"), params.get("max_stop_percent")
        if _is_number(min_pct) and _is_number(max_pct) and min_pct >= max_pct:
            errors.append(ValidationError(
                field="min_stop_percent",
                message="Must be smaller than max_stop_percent",
                value=min_pct
            ))

        # Validate multipliers
        for name in ("buffer_atr_multiplier", "fallback_atr_multiplier"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a non-negative number",
                        value=value
                    ))

        # Validate scoring weights
        weight_names = ("proximity_weight", "strength_weight", "recency_weight")
        if all(name in params for name in weight_names):
            weights = [params[name] for name in weight_names]
            if not all(_is_number(w) for w in weights) or abs(sum(weights) - 1.0) > 1e-6:
                errors.append(ValidationError(
                    field="proximity_weight",
                    message="Scoring weights must sum to 1.0",
                    value=weights
                ))

        return errors

    @staticmethod
    def validate_scanner_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate scanner thresholds."""
        errors = []

        # Validate score thresholds
        for name in ("min_base_score", "min_style_score",
                     "weekend_min_base_score", "weekend_min_style_score", "min_confidence"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value < 0 or value > 100:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a number between 0 and 100",
                        value=value
                    ))

        # Validate risk/reward
        for name in ("min_risk_reward", "weekend_min_risk_reward"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a non-negative number",
                        value=value
                    ))

        for name in ("adaptive_thresholds", "confidence_scoring"):
            if name in params and not isinstance(params[name], bool):
                errors.append(ValidationError(
                    field=name,
                    message="Must be a boolean",
                    value=params[name]
                ))

        # Validate cooldown and rate limits
        for name in ("signal_ttl_minutes", "cooldown_minutes", "max_signals_per_symbol_per_hour"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a non-negative integer",
                        value=value
                    ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "indicators" in config:
            errors.extend(ConfigValidator.validate_indicator_params(config["indicators"]))

        if "structure" in config:
            errors.extend(ConfigValidator.validate_structure_params(config["structure"]))

        if "gamma" in config:
            errors.extend(ConfigValidator.validate_gamma_params(config["gamma"]))

        if "stops" in config:
            errors.extend(ConfigValidator.validate_stop_params(config["stops"]))

        if "scanner" in config:
            errors.extend(ConfigValidator.validate_scanner_params(config["scanner"]))

        return errors
