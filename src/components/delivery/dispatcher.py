"""
Rate-limited batch dispatcher.

Splits recipients into fixed-size batches, pauses between batches (never
after the last one) and captures per-recipient exceptions. Knows nothing
about email: the handler does the work for one recipient and signals a
failure by raising.

Implementations:
1. SequentialDispatcher: one recipient at a time (default)
2. ThreadedDispatcher: bounded thread pool per batch, outcomes in input order
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

T = TypeVar("T")

Sleep = Callable[[float], None]


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split items into consecutive chunks of at most `size`."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


@dataclass(frozen=True)
class DispatchOutcome(Generic[T]):
    """Result of handling one recipient."""

    recipient: T
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DispatchReport(Generic[T]):
    """Outcomes of one dispatch run, plus batch and delay counts."""

    outcomes: list[DispatchOutcome[T]] = field(default_factory=list)
    batches: int = 0
    delays: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def failures(self) -> list[DispatchOutcome[T]]:
        return [o for o in self.outcomes if not o.ok]


class BatchDispatcher(Protocol):
    """Swappable strategy for submitting work to many recipients."""

    def dispatch(
        self,
        recipients: Sequence[T],
        handler: Callable[[T], None],
    ) -> DispatchReport[T]:
        ...


def _attempt(handler: Callable[[T], None], recipient: T) -> DispatchOutcome[T]:
    try:
        handler(recipient)
    except Exception as e:
        return DispatchOutcome(recipient=recipient, error=str(e) or type(e).__name__)
    return DispatchOutcome(recipient=recipient)


class SequentialDispatcher:
    """Handles recipients one by one, sleeping between batches."""

    def __init__(
        self,
        batch_size: int = 50,
        delay_seconds: float = 0.5,
        sleep: Sleep | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1")
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep or time.sleep

    def dispatch(
        self,
        recipients: Sequence[T],
        handler: Callable[[T], None],
    ) -> DispatchReport[T]:
        report: DispatchReport[T] = DispatchReport()
        for index, batch in enumerate(chunked(recipients, self.batch_size)):
            if index > 0:
                self._sleep(self.delay_seconds)
                report.delays += 1
            report.outcomes.extend(self._run_batch(batch, handler))
            report.batches += 1
        return report

    def _run_batch(
        self,
        batch: list[T],
        handler: Callable[[T], None],
    ) -> list[DispatchOutcome[T]]:
        return [_attempt(handler, recipient) for recipient in batch]


class ThreadedDispatcher(SequentialDispatcher):
    """Handles each batch on a bounded thread pool. Batches stay sequential."""

    def __init__(
        self,
        batch_size: int = 50,
        delay_seconds: float = 0.5,
        max_workers: int = 4,
        sleep: Sleep | None = None,
    ) -> None:
        super().__init__(batch_size=batch_size, delay_seconds=delay_seconds, sleep=sleep)
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers

    def _run_batch(
        self,
        batch: list[T],
        handler: Callable[[T], None],
    ) -> list[DispatchOutcome[T]]:
        workers = min(self.max_workers, len(batch))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda recipient: _attempt(handler, recipient), batch))


def build_dispatcher(
    kind: str = "sequential",
    *,
    batch_size: int = 50,
    batch_delay_ms: int = 500,
    max_workers: int = 4,
    sleep: Sleep | None = None,
) -> SequentialDispatcher:
    """Create the dispatcher named in rules.yaml `delivery.dispatcher`."""
    delay = batch_delay_ms / 1000
    if kind == "sequential":
        return SequentialDispatcher(batch_size=batch_size, delay_seconds=delay, sleep=sleep)
    if kind == "threaded":
        return ThreadedDispatcher(
            batch_size=batch_size,
            delay_seconds=delay,
            max_workers=max_workers,
            sleep=sleep,
        )
    raise ValueError(f"Unknown dispatcher: {kind}")
