# composer/engine/events.py
import logging
from typing import Sequence

from composer.domain.invariants.exceptions import ErrorKind

logger = logging.getLogger(__name__)


class EngineEvents:
    """
    Hooks consumed by the presentation layer. Every method is a no-op by
    default; subclass and override what the screen needs.
    """

    def on_sequence_changed(self, sequence: Sequence) -> None:
        pass

    def on_tree_changed(self, forest: Sequence) -> None:
        pass

    def on_error(self, kind: ErrorKind, message: str) -> None:
        pass


def report_error(events: EngineEvents, error: BaseException) -> None:
    """
    Forward an error to ``events.on_error``. Cancellation is swallowed:
    it reflects superseded intent and is never shown to the user.
    """
    kind = getattr(error, "kind", ErrorKind.PERSISTENCE_FAILED)

    if kind is ErrorKind.CANCELLED:
        logger.debug("Suppressed cancellation: %s", error)
        return

    try:
        events.on_error(kind, str(error))
    except Exception:
        logger.exception("on_error listener failed for %s", kind.value)
