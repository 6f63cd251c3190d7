"""
Context providers and tiered resolution.

Live flow and gamma contexts come from external providers. Every lookup goes
through resolve_context, which tries live, then historical, then a default,
and reports which tier supplied the value. Provider failures never escape.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Protocol, TypeVar

from signal_engine.data.models import OptionsChainData
from signal_engine.errors import ContextProviderError, GracefulDegradationError
from signal_engine.logging.config import get_context_logger, log_context_resolution
from signal_engine.models.features import ContextTier, FlowContext
from signal_engine.models.gamma import GammaContext

logger = get_context_logger(__name__)

T = TypeVar("T")


class FlowContextProvider(Protocol):
    """Supplies the live options flow context for a symbol."""

    def get_flow_context(self, symbol: str) -> Optional[FlowContext]:
        ...


class GammaContextProvider(Protocol):
    """Supplies the live dealer gamma context for a symbol."""

    def get_gamma_context(self, symbol: str) -> Optional[GammaContext]:
        ...


class OptionsDataProvider(Protocol):
    """Supplies options-chain derived inputs for options-aware detectors."""

    def get_options_data(self, symbol: str) -> Optional[OptionsChainData]:
        ...


@dataclass(frozen=True)
class ResolvedContext(Generic[T]):
    """A context value tagged with the tier that produced it."""
    tier: ContextTier
    value: T
    reason: Optional[str] = None


@dataclass(frozen=True)
class LiveContext:
    """Results of the live fetches for one symbol (None when unavailable)."""
    flow: Optional[FlowContext] = None
    gamma: Optional[GammaContext] = None
    errors: tuple[str, ...] = ()


def _attempt(tier: ContextTier, source: Optional[Callable[[], Optional[T]]],
             name: str, symbol: str) -> tuple[Optional[T], Optional[str]]:
    if source is None:
        return None, f"{tier.value} unavailable"
    try:
        value = source()
    except Exception as e:
        logger.warning(
            "Context tier failed",
            context_name=name,
            symbol=symbol,
            tier=tier.value,
            error=str(e),
            error_type=type(e).__name__,
        )
        return None, f"{tier.value} failed: {e}"
    if value is None:
        return None, f"{tier.value} empty"
    return value, None


def resolve_context(
    live: Optional[Callable[[], Optional[T]]],
    historical: Optional[Callable[[], Optional[T]]],
    default: Callable[[], T],
    name: str = "context",
    symbol: str = ""
) -> ResolvedContext[T]:
    """
    Resolve a context value through live -> historical -> default tiers.

    Each tier is a zero-argument callable. A tier that raises or returns
    None falls through to the next one.

    Args:
        live: Live source, or None if no live provider is configured
        historical: Historical reconstruction, or None
        default: Always-available neutral default
        name: Context name for logging
        symbol: Symbol for logging

    Returns:
        ResolvedContext tagged with the tier that produced the value
    """
    reasons = []

    value, reason = _attempt(ContextTier.LIVE, live, name, symbol)
    if value is not None:
        log_context_resolution(logger, name, symbol, ContextTier.LIVE.value)
        return ResolvedContext(tier=ContextTier.LIVE, value=value)
    reasons.append(reason)

    value, reason = _attempt(ContextTier.HISTORICAL, historical, name, symbol)
    if value is not None:
        joined = "; ".join(r for r in reasons if r)
        log_context_resolution(logger, name, symbol, ContextTier.HISTORICAL.value, joined)
        return ResolvedContext(tier=ContextTier.HISTORICAL, value=value, reason=joined)
    reasons.append(reason)

    joined = "; ".join(r for r in reasons if r)
    log_context_resolution(logger, name, symbol, ContextTier.DEFAULT.value, joined)
    return ResolvedContext(tier=ContextTier.DEFAULT, value=default(), reason=joined)


def _raising_provider_error(name: str, symbol: str, fetch: Callable[[], T]) -> Callable[[], T]:
    """Wrap a provider call so any failure surfaces as ContextProviderError."""
    def task() -> T:
        try:
            return fetch()
        except Exception as e:
            raise ContextProviderError(
                f"Live {name} context fetch failed: {e}",
                provider=name,
                symbol=symbol,
                degraded_functionality=f"live_{name}",
            ) from e
    return task


def fetch_live_contexts(
    symbol: str,
    flow_provider: Optional[FlowContextProvider] = None,
    gamma_provider: Optional[GammaContextProvider] = None,
    timeout: float = 5.0
) -> LiveContext:
    """
    Fetch live flow and gamma contexts concurrently.

    Each fetch is independent; a failure or timeout yields None for that
    context and is recorded in errors.
    """
    tasks: dict[str, Callable[[], object]] = {}
    if flow_provider is not None:
        tasks["flow"] = _raising_provider_error("flow", symbol, lambda: flow_provider.get_flow_context(symbol))
    if gamma_provider is not None:
        tasks["gamma"] = _raising_provider_error("gamma", symbol, lambda: gamma_provider.get_gamma_context(symbol))

    if not tasks:
        return LiveContext()

    results: dict[str, object] = {}
    errors = []
    executor = ThreadPoolExecutor(max_workers=len(tasks))
    try:
        future_to_name = {executor.submit(task): name for name, task in tasks.items()}
        try:
            for future in as_completed(future_to_name, timeout=timeout):
                name = future_to_name[future]
                try:
                    results[name] = future.result()
                except GracefulDegradationError as e:
                    logger.warning(
                        "Live context fetch failed",
                        context_name=name,
                        symbol=symbol,
                        error=str(e),
                        degraded_functionality=e.degraded_functionality,
                        fallback_strategy=e.fallback_strategy,
                    )
                    errors.append(str(e))
        except FuturesTimeoutError:
            pending = sorted(name for future, name in future_to_name.items() if not future.done())
            logger.warning("Live context fetch timed out", symbol=symbol, pending=pending, timeout=timeout)
            errors.extend(f"Live {name} context fetch timed out" for name in pending)
    finally:
        executor.shutdown(wait=False)

    return LiveContext(
        flow=results.get("flow"),  # type: ignore[arg-type]
        gamma=results.get("gamma"),  # type: ignore[arg-type]
        errors=tuple(errors),
    )
