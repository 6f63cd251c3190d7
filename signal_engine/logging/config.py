"""
Logging setup for the signal engine.

Everything logs through structlog on top of the standard library handlers.
Indicator and scoring functions stay silent; the feature builder, context
resolution, detector runner and engine emit records through the helpers
below so that a scan can be reconstructed from its log lines.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger

_RENDERER_JSON = "json"
_RENDERER_CONSOLE = "console"


def _processor_chain(
    renderer: str,
    include_timestamp: bool,
    include_caller: bool,
    extra_processors: Optional[list],
) -> list:
    """Build the processor list; the renderer is always last."""
    chain: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if include_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if include_caller:
        callsite = structlog.processors.CallsiteParameter
        chain.append(structlog.processors.CallsiteParameterAdder(
            parameters=[callsite.FILENAME, callsite.FUNC_NAME, callsite.LINENO]
        ))
    chain.extend(extra_processors or [])

    if renderer == _RENDERER_JSON:
        chain.append(structlog.processors.JSONRenderer())
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Route structlog output for scanners, backtests and the demo script.

    Args:
        level: Minimum level name (DEBUG shows skipped detectors)
        format_json: One JSON object per line instead of console output
        include_timestamp: Stamp records with UTC ISO time
        include_caller: Add file, function and line of the call site
        extra_processors: Processors inserted just before the renderer
    """
    log_level = getattr(logging, level.upper())
    logging.basicConfig(level=log_level, stream=sys.stdout, format="%(message)s")

    renderer = _RENDERER_JSON if format_json else _RENDERER_CONSOLE
    structlog.configure(
        processors=_processor_chain(renderer, include_timestamp, include_caller, extra_processors),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Module logger; pass ``__name__``."""
    return structlog.get_logger(name)


def get_detector_logger(name: str) -> FilteringBoundLogger:
    """
    Logger for detector gate and scoring decisions.

    Records carry ``audit_trail=True`` since fired detectors explain
    why a signal was or was not emitted.
    """
    return get_logger(name).bind(subsystem="detectors", audit_trail=True)


def get_context_logger(name: str) -> FilteringBoundLogger:
    """Logger for live/historical/default context resolution."""
    return get_logger(name).bind(subsystem="context", audit_trail=False)


def log_detector_decision(
    logger: FilteringBoundLogger,
    detector_type: str,
    fired: bool,
    symbol: str,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a detector gate decision with standardized format.

    Args:
        logger: Structlog logger instance
        detector_type: Type name of the detector evaluated
        fired: Whether the detector gate passed
        symbol: Symbol being scanned
        reason: Detailed reason for the decision
        context: Additional context data (scores, thresholds)
    """
    bound_logger = logger.bind(
        detector_type=detector_type,
        detector_result="FIRED" if fired else "SKIPPED",
        symbol=symbol,
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if fired:
        bound_logger.info("Detector fired")
    else:
        bound_logger.debug("Detector skipped")


def log_context_resolution(
    logger: FilteringBoundLogger,
    context_name: str,
    symbol: str,
    tier: str,
    reason: Optional[str] = None
) -> None:
    """
    Log which resolution tier supplied a context value.

    Args:
        logger: Structlog logger instance
        context_name: Context being resolved (flow, gamma)
        symbol: Symbol the context belongs to
        tier: Tier that produced the value (live, historical, default)
        reason: Why earlier tiers were skipped, if any
    """
    bound_logger = logger.bind(
        context_name=context_name,
        symbol=symbol,
        tier=tier,
    )

    if reason:
        bound_logger = bound_logger.bind(reason=reason)

    if tier == "live":
        bound_logger.debug("Context resolved")
    else:
        bound_logger.info("Context degraded")
