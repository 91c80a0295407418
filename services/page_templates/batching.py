"""
Rate-limited insertion shared by everything that writes to the host canvas.

Elements go in strictly one at a time, in order, grouped into fixed-size
batches with a short pause after each insertion and a longer pause between
batches. The host is not safe for concurrent mutation, so nothing here runs
in parallel.
"""

import asyncio
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

from config.rate_limits import HOST_CALL_TIMEOUT_SECONDS, INSERTION_PROFILES, TEMPLATE_INSERTION_LIMITS
from setup_logging_optimized import get_logger

from .exceptions import GenerationCancelled, InvalidConfigError, should_abort_generation

logger = get_logger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[Any]]


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError:
        raise InvalidConfigError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidConfigError(f"{name} must be a whole number, got {value!r}")


@dataclass
class InsertionPolicy:
    """Backpressure policy for host insertion (delays in seconds)"""
    batch_size: int = TEMPLATE_INSERTION_LIMITS["batch_size"]
    delay_between_elements: float = TEMPLATE_INSERTION_LIMITS["delay_between_elements"]
    delay_between_batches: float = TEMPLATE_INSERTION_LIMITS["delay_between_batches"]
    page_settle_delay: float = TEMPLATE_INSERTION_LIMITS["page_settle_delay"]
    host_call_timeout: Optional[float] = HOST_CALL_TIMEOUT_SECONDS

    @classmethod
    def from_profile(cls, name: str) -> "InsertionPolicy":
        try:
            profile = INSERTION_PROFILES[name]
        except KeyError:
            raise InvalidConfigError(
                f"Unknown insertion profile {name!r}. Available: {', '.join(INSERTION_PROFILES)}"
            )
        return cls(
            batch_size=profile["batch_size"],
            delay_between_elements=profile["delay_between_elements"],
            delay_between_batches=profile["delay_between_batches"],
            page_settle_delay=profile["page_settle_delay"],
        )

    @classmethod
    def from_env(cls) -> "InsertionPolicy":
        profile_name = os.getenv("TEMPLATE_INSERTION_PROFILE")
        base = cls.from_profile(profile_name) if profile_name else cls()

        return cls(
            batch_size=_env_int("TEMPLATE_BATCH_SIZE", base.batch_size),
            delay_between_elements=_env_float("TEMPLATE_ELEMENT_DELAY", base.delay_between_elements),
            delay_between_batches=_env_float("TEMPLATE_BATCH_DELAY", base.delay_between_batches),
            page_settle_delay=_env_float("TEMPLATE_PAGE_SETTLE_DELAY", base.page_settle_delay),
            host_call_timeout=_env_float("TEMPLATE_HOST_TIMEOUT", base.host_call_timeout),
        )

    def validate(self) -> "InsertionPolicy":
        if self.batch_size < 1:
            raise InvalidConfigError(f"batch_size must be at least 1, got {self.batch_size}")
        for name in ("delay_between_elements", "delay_between_batches", "page_settle_delay"):
            if getattr(self, name) < 0:
                raise InvalidConfigError(f"{name} must not be negative, got {getattr(self, name)}")
        if self.host_call_timeout is not None and self.host_call_timeout <= 0:
            raise InvalidConfigError(f"host_call_timeout must be positive, got {self.host_call_timeout}")
        return self


@lru_cache(maxsize=1)
def get_insertion_policy() -> InsertionPolicy:
    """Get the process-wide insertion policy from the environment"""
    return InsertionPolicy.from_env().validate()


class CancellationToken:
    """Checked between elements; a cancelled run never tears a single element"""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise GenerationCancelled(f"Generation cancelled: {self.reason}")


@dataclass
class BatchOutcome:
    inserted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    batches: int = 0


def chunk(items: Sequence[T], size: int) -> List[Sequence[T]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


async def call_with_timeout(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Bound a host call when the policy sets a timeout"""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)


async def insert_in_batches(
    items: Sequence[T],
    insert_one: Callable[[T], Awaitable[bool]],
    policy: InsertionPolicy,
    key: Callable[[T], str] = str,
    sleep: SleepFn = asyncio.sleep,
    cancellation: Optional[CancellationToken] = None,
) -> BatchOutcome:
    """
    Insert items one at a time in fixed-size batches.

    insert_one returns True when it inserted the item and False when it
    deliberately skipped it. Any other failure is logged and the run moves
    on to the next item; only MissingTokenError and GenerationCancelled
    escape.
    """
    outcome = BatchOutcome()
    batches = chunk(list(items), policy.batch_size)

    for batch_index, batch in enumerate(batches):
        outcome.batches += 1
        logger.debug(f"Adding batch {batch_index + 1}/{len(batches)} ({len(batch)} elements)")

        for item in batch:
            if cancellation is not None:
                cancellation.raise_if_cancelled()

            item_key = key(item)
            try:
                inserted = await insert_one(item)
            except Exception as e:
                if should_abort_generation(e):
                    raise
                logger.warning(f"Error adding element {item_key}: {e}")
                outcome.failed.append((item_key, str(e)))
                continue

            if inserted:
                outcome.inserted.append(item_key)
                await sleep(policy.delay_between_elements)
            else:
                outcome.skipped.append(item_key)

        if batch_index < len(batches) - 1:
            logger.debug(f"Batch complete, waiting {policy.delay_between_batches}s before next batch")
            await sleep(policy.delay_between_batches)

    return outcome
