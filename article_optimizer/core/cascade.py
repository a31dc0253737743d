"""Ranked-strategy evaluation.

Every "try these in priority order, keep the first one that works" chain in
the pipeline (content selectors, metadata fields, pagination controls, item
cards, search strategies) goes through these helpers.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

Strategy = Callable[[Any], Any]


@dataclass
class CascadeHit(Generic[T]):
    """Winning strategy output with the rank it came from."""
    value: T
    index: int
    name: str


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict, set)) and len(value) == 0:
        return True
    return False


def _strategy_name(strategy, index: int) -> str:
    return getattr(strategy, 'cascade_name', None) or getattr(strategy, '__name__', None) or f"strategy_{index}"


def first_success(
    strategies: Iterable[Strategy],
    subject: Any,
    accept: Optional[Callable[[Any], bool]] = None,
) -> Optional[CascadeHit]:
    """
    Evaluate strategies left to right and stop at the first usable result.

    A result is usable when it is non-empty and, if given, ``accept(result)``
    is true. A strategy that raises counts as empty.
    """
    for index, strategy in enumerate(strategies):
        try:
            value = strategy(subject)
        except Exception as e:
            logger.debug(f"Cascade strategy {_strategy_name(strategy, index)} raised: {e}")
            continue
        if _is_empty(value):
            continue
        if accept is not None and not accept(value):
            continue
        return CascadeHit(value=value, index=index, name=_strategy_name(strategy, index))
    return None


async def first_success_async(
    strategies: Iterable[Strategy],
    subject: Any,
    accept: Optional[Callable[[Any], bool]] = None,
    swallow: Tuple[type, ...] = (Exception,),
) -> Optional[CascadeHit]:
    """Async variant of :func:`first_success`; strategies may be sync or async.

    Exceptions outside ``swallow`` propagate to the caller.
    """
    for index, strategy in enumerate(strategies):
        name = _strategy_name(strategy, index)
        try:
            value = strategy(subject)
            if inspect.isawaitable(value):
                value = await value
        except swallow as e:
            logger.warning(f"Cascade strategy {name} failed: {e}")
            continue
        if _is_empty(value):
            logger.debug(f"Cascade strategy {name} returned nothing")
            continue
        if accept is not None and not accept(value):
            continue
        return CascadeHit(value=value, index=index, name=name)
    return None


def named(name: str, strategy: Strategy) -> Strategy:
    """Attach a readable name to a strategy for logging."""
    strategy.cascade_name = name
    return strategy
