from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..matching.types import Option
from .drivers import WidgetShapeError, WidgetTimings, driver_for, read_shape
from .kinds import ControlShape, WidgetKind, classify_widget, is_multi_level, is_virtualized
from .session import WidgetFailure, WidgetSession, WidgetState, WidgetTransitionError

logger = logging.getLogger(__name__)


class WidgetAdapter:
    """Uniform open / enumerate / search / select / close over any control.

    Every method is bounded by a timeout and reports failure as ``False`` or
    an empty list; nothing raises to the caller. Sessions are keyed by the
    control object and discarded once the control is closed or a selection
    completes.
    """

    def __init__(self, timings: Optional[WidgetTimings] = None) -> None:
        self.timings = timings or WidgetTimings()
        self._sessions: Dict[int, WidgetSession] = {}

    async def session_for(self, control: Any) -> WidgetSession:
        """Return the live session for ``control``, classifying it on first use."""

        key = id(control)
        session = self._sessions.get(key)
        if session is not None:
            return session

        try:
            shape = await asyncio.wait_for(
                read_shape(control, self.timings.open_ms), self.timings.open_ms / 1000
            )
        except (asyncio.TimeoutError, PlaywrightTimeoutError, PlaywrightError, WidgetShapeError) as exc:
            logger.debug("Could not read control shape", extra={"error": str(exc)})
            shape = ControlShape()
        kind = classify_widget(shape)
        session = WidgetSession(
            control=control,
            kind=kind,
            shape=shape,
            driver=driver_for(kind, shape, self.timings),
        )
        self._sessions[key] = session
        logger.debug("Classified control", extra={"kind": kind.value, "tag": shape.tag, "role": shape.role})
        return session

    def peek(self, control: Any) -> Optional[WidgetSession]:
        return self._sessions.get(id(control))

    async def open(self, control: Any) -> bool:
        session = await self.session_for(control)
        if session.state in (WidgetState.OPEN, WidgetState.SEARCHING):
            return True
        if session.state is not WidgetState.CLOSED:
            return False
        if session.kind is WidgetKind.UNKNOWN:
            session.fail(WidgetFailure.UNSUPPORTED_SHAPE, "Control has no recognizable widget shape")
            return False

        session.transition(WidgetState.OPENING)
        ok, _ = await self._bounded(session, session.driver.open(control), self.timings.open_ms, "open")
        if ok:
            session.transition(WidgetState.OPEN)
        return ok

    async def enumerate_options(self, control: Any) -> List[Option]:
        session = self.peek(control)
        if session is None or session.state is not WidgetState.OPEN:
            logger.debug("Enumerate requested on a control that is not open")
            return []
        ok, options = await self._bounded(session, session.driver.options(control), self.timings.open_ms, "enumerate")
        if not ok:
            return []
        if is_virtualized(session.shape):
            logger.debug("Virtualized list, returning rendered options only", extra={"count": len(options)})
        return list(options)

    async def search(self, control: Any, text: str) -> List[Option]:
        session = self.peek(control)
        if session is None or session.state is not WidgetState.OPEN:
            logger.debug("Search requested on a control that is not open")
            return []
        if session.kind is not WidgetKind.SEARCHABLE:
            logger.debug("Search is only supported on searchable controls", extra={"kind": session.kind.value})
            return []

        session.transition(WidgetState.SEARCHING, text)
        ok, options = await self._bounded(
            session, session.driver.search(control, text), self.timings.search_ms, "search"
        )
        if not ok:
            return []
        session.transition(WidgetState.OPEN)
        return list(options)

    async def select(self, control: Any, option: Option) -> bool:
        session = self.peek(control)
        if session is None or session.state is WidgetState.CLOSED:
            if not await self.open(control):
                return False
            session = self.peek(control)
        if session is None or session.state not in (WidgetState.OPEN, WidgetState.SEARCHING):
            return False

        if option.path and not is_multi_level(session.shape):
            logger.debug("Nested path given for a control without submenu markup", extra={"path": list(option.path)})
        session.transition(WidgetState.SELECTING, option.text)
        # Each submenu level gets its own select budget.
        timeout_ms = self.timings.select_ms * (1 + len(option.path))
        ok, _ = await self._bounded(session, session.driver.activate(control, option), timeout_ms, "select")
        if not ok:
            return False
        session.transition(WidgetState.CLOSED, "selected")
        self._discard(control)
        return True

    async def select_path(self, control: Any, path: Sequence[str]) -> bool:
        """Select the last entry of ``path`` after opening the submenus named before it."""

        labels = [label for label in path if label]
        if not labels:
            return False
        return await self.select(control, Option(text=labels[-1], path=tuple(labels[:-1])))

    async def close(self, control: Any) -> bool:
        session = self.peek(control)
        if session is None:
            return True
        if session.state is WidgetState.ERROR:
            session.transition(WidgetState.CLOSED, "reset")
            self._discard(control)
            return True
        if session.state is WidgetState.CLOSED:
            self._discard(control)
            return True
        if session.state is WidgetState.SEARCHING:
            session.transition(WidgetState.OPEN)
        if session.state is not WidgetState.OPEN:
            return False

        ok, _ = await self._bounded(session, session.driver.dismiss(control), self.timings.select_ms, "close")
        if not ok:
            return False
        session.transition(WidgetState.CLOSED, "dismissed")
        self._discard(control)
        return True

    def forget(self, control: Any) -> None:
        """Drop the session for ``control`` without touching the page."""

        self._discard(control)

    def _discard(self, control: Any) -> None:
        self._sessions.pop(id(control), None)

    async def _bounded(
        self, session: WidgetSession, call: Awaitable[Any], timeout_ms: int, operation: str
    ) -> Tuple[bool, Any]:
        try:
            result = await asyncio.wait_for(call, timeout_ms / 1000)
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            session.fail(WidgetFailure.TIMEOUT, f"{operation} exceeded {timeout_ms} ms")
            return False, None
        except WidgetShapeError as exc:
            session.fail(WidgetFailure.UNSUPPORTED_SHAPE, str(exc))
            return False, None
        except WidgetTransitionError as exc:
            logger.error("Widget session out of sync", extra={"operation": operation, "error": str(exc)})
            session.fail(WidgetFailure.INTERACTION, str(exc))
            return False, None
        except (PlaywrightError, RuntimeError, ValueError) as exc:
            session.fail(WidgetFailure.INTERACTION, f"{operation} failed: {exc}")
            return False, None
        except Exception as exc:
            logger.warning("Unexpected widget error", extra={"operation": operation}, exc_info=True)
            session.fail(WidgetFailure.INTERACTION, f"{operation} failed: {type(exc).__name__}: {exc}")
            return False, None
        return True, result
