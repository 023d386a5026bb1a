from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable

from hostpanel.rpc import RemoteResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Compensation:
    description: str
    undo: Callable[[], RemoteResult | None]


@dataclass(frozen=True)
class CompensationOutcome:
    description: str
    succeeded: bool
    error: str | None = None


class CompensationStack:
    """Undo actions for remote side effects, run newest first on failure."""

    def __init__(self) -> None:
        self._entries: list[Compensation] = []

    def push(self, description: str, undo: Callable[[], RemoteResult | None]) -> None:
        logger.debug("Registered compensation: %s", description)
        self._entries.append(Compensation(description=description, undo=undo))

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Forget every undo once the work they guard is durable."""
        if self._entries:
            logger.debug("Discarding %d compensation(s)", len(self._entries))
        self._entries.clear()

    def unwind(self) -> list[CompensationOutcome]:
        """Run every registered undo in reverse order.

        A failing undo is logged and recorded, and the remaining undos still
        run. The stack is empty afterwards.
        """
        outcomes: list[CompensationOutcome] = []
        while self._entries:
            entry = self._entries.pop()
            logger.info("Compensating: %s", entry.description)
            try:
                result = entry.undo()
            except Exception as exc:
                logger.exception("Compensation raised: %s", entry.description)
                outcomes.append(CompensationOutcome(entry.description, False, str(exc)))
                continue
            if result is not None and not result.success:
                logger.error("Compensation failed: %s (%s)", entry.description, result.error)
                outcomes.append(CompensationOutcome(entry.description, False, result.error))
                continue
            outcomes.append(CompensationOutcome(entry.description, True))
        return outcomes
