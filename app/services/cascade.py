"""
app/services/cascade.py

Purpose: Provider cascade combinator

- Ordered tiers of strategies (one tier per provider, one strategy per key)
- Error-class-aware continuation: next key or abort the tier
- First success wins, otherwise the fallback value
- Every attempt recorded for logging and tests
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar, Union

from app.core.exceptions import ProviderError
from app.core.logging import get_logger, LogContext

logger = get_logger(__name__)

T = TypeVar("T")

OUTCOME_SUCCESS = "success"


@dataclass
class Strategy(Generic[T]):
    """
    One provider/key combination. ``call`` must raise ProviderError on failure.
    """
    provider: str
    key_index: int
    call: Callable[[], Awaitable[T]]


@dataclass
class Attempt:
    provider: str
    key_index: int
    outcome: str
    error: Optional[str] = None


@dataclass
class CascadeResult(Generic[T]):
    value: T
    used_fallback: bool
    provider: Optional[str] = None
    key_index: Optional[int] = None
    attempts: List[Attempt] = field(default_factory=list)


async def run_cascade(
    tiers: Sequence[Sequence[Strategy[T]]],
    fallback: Union[T, Callable[[], T]],
    label: str = "cascade"
) -> CascadeResult[T]:
    """
    Tries each strategy in order until one succeeds.

    Inside a tier, errors with ``next_key_allowed`` move on to the next
    strategy; any other provider error abandons the rest of that tier.

    Args:
        tiers: Ordered tiers of strategies
        fallback: Value (or zero-arg factory) used when every strategy fails
        label: Name used in log messages

    Returns:
        CascadeResult with the winning value and all attempts
    """
    attempts: List[Attempt] = []

    for tier in tiers:
        for strategy in tier:
            with LogContext(provider=strategy.provider):
                try:
                    value = await strategy.call()
                except ProviderError as e:
                    attempts.append(Attempt(
                        provider=strategy.provider,
                        key_index=strategy.key_index,
                        outcome=type(e).__name__,
                        error=e.message,
                    ))
                    logger.warning(
                        f"{label}: {strategy.provider} key #{strategy.key_index + 1} failed "
                        f"({type(e).__name__}): {e.message}"
                    )
                    if e.next_key_allowed:
                        continue
                    break

            attempts.append(Attempt(
                provider=strategy.provider,
                key_index=strategy.key_index,
                outcome=OUTCOME_SUCCESS,
            ))
            logger.info(f"{label}: {strategy.provider} key #{strategy.key_index + 1} succeeded")
            return CascadeResult(
                value=value,
                used_fallback=False,
                provider=strategy.provider,
                key_index=strategy.key_index,
                attempts=attempts,
            )

    if attempts:
        logger.warning(f"{label}: all providers failed, using fallback")
    else:
        logger.info(f"{label}: no providers configured, using fallback")

    value: Any = fallback() if callable(fallback) else fallback
    return CascadeResult(value=value, used_fallback=True, attempts=attempts)
