"""Sequential autofill pass over a batch of form controls."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Mapping, Optional, Sequence, Union

from openai import OpenAIError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import Settings, get_settings
from ..matching.checkbox import decide_checkbox
from ..matching.engine import MatchEngine
from ..matching.types import FieldDescriptor, MatchMethod, MatchReport, MatchResult, Option
from ..profile.models import CanonicalProfile
from ..profile.normalizer import normalize
from ..remote.llm import build_default_client
from ..widgets.adapter import WidgetAdapter
from ..widgets.drivers import WidgetShapeError, check_radio, read_radio_options
from ..widgets.kinds import WidgetKind
from ..widgets.session import WidgetFailure
from .report import AutofillReport, FieldOutcome, OutcomeKind

logger = logging.getLogger(__name__)

_FAILURE_OUTCOMES = {
    WidgetFailure.TIMEOUT: OutcomeKind.ADAPTER_TIMEOUT,
    WidgetFailure.UNSUPPORTED_SHAPE: OutcomeKind.ADAPTER_UNSUPPORTED_SHAPE,
    WidgetFailure.INTERACTION: OutcomeKind.ADAPTER_ERROR,
}


@dataclass(slots=True)
class FieldTarget:
    """A field descriptor and, optionally, the live control it describes."""

    field: FieldDescriptor
    control: Any = None


class AutofillOrchestrator:
    """Match and fill fields one at a time.

    Settings (confidence threshold, remote permission, low-confidence policy,
    preview) are read once at the start of each pass. Cancellation is checked
    between fields only; a field in progress always finishes.
    """

    def __init__(
        self,
        *,
        engine: Optional[MatchEngine] = None,
        adapter: Optional[WidgetAdapter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings
        resolved = settings or get_settings()
        self.engine = engine or MatchEngine(
            thresholds=resolved.stage_thresholds(),
            suggestion_client=_remote_client(resolved),
        )
        self.adapter = adapter or WidgetAdapter(resolved.widget_timings())

    async def run(
        self,
        targets: Sequence[Union[FieldTarget, FieldDescriptor]],
        profile: Union[CanonicalProfile, Mapping[str, Any]],
        *,
        cancel_event: Optional[asyncio.Event] = None,
        preview: Optional[bool] = None,
    ) -> AutofillReport:
        settings = self._settings or get_settings()
        batch = [_as_target(target) for target in targets]
        canonical = profile if isinstance(profile, CanonicalProfile) else normalize(profile)
        report = AutofillReport(
            preview=settings.preview if preview is None else preview,
            remote_allowed=settings.allow_remote,
        )
        started = time.monotonic()

        for position, target in enumerate(batch):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Autofill pass cancelled", extra={"remaining": len(batch) - position})
                report.cancelled = True
                for remaining in batch[position:]:
                    report.add(FieldOutcome(field=remaining.field, kind=OutcomeKind.CANCELLED, message="Pass cancelled"))
                break
            try:
                outcome = await self.process(target, canonical, settings=settings, preview=report.preview)
            except Exception as exc:
                logger.exception("Field could not be processed", extra={"field": target.field.context_text()})
                outcome = FieldOutcome(
                    field=target.field,
                    kind=OutcomeKind.ADAPTER_ERROR,
                    result=MatchResult.none(f"{type(exc).__name__}: {exc}"),
                    message=f"Field could not be processed: {type(exc).__name__}: {exc}",
                )
                self.adapter.forget(target.control)
            report.add(outcome)

        report.duration_seconds = time.monotonic() - started
        logger.info("Autofill pass finished", extra=report.summary())
        return report

    async def process(
        self,
        target: FieldTarget,
        profile: CanonicalProfile,
        *,
        settings: Settings,
        preview: bool,
    ) -> FieldOutcome:
        field = target.field
        if field.type.lower() == "checkbox":
            return await self._process_checkbox(target, profile, settings=settings, preview=preview)
        if field.type.lower() == "radio":
            return await self._process_radio(target, profile, settings=settings, preview=preview)

        control = target.control
        widget_kind: Optional[str] = None
        if control is not None and not field.options:
            if not await self.adapter.open(control):
                return await self._adapter_failure(target, "Control could not be opened")
            session = self.adapter.peek(control)
            widget_kind = session.kind.value if session else None
            options = await self.adapter.enumerate_options(control)
            if not options and session is not None and session.kind is WidgetKind.SEARCHABLE:
                hint = self.engine.search_hint(field, profile)
                if hint:
                    options = await self.adapter.search(control, hint)
            if self._failed(control):
                return await self._adapter_failure(target, "Options could not be read")
            field = field.with_options(options)

        report = await self._explain(field, profile, settings)
        result = report.result

        if not result.matched and control is not None and widget_kind == WidgetKind.SEARCHABLE.value:
            hint = self.engine.search_hint(field, profile)
            if hint:
                searched = await self.adapter.search(control, hint)
                if searched:
                    field = field.with_options(searched)
                    report = await self._explain(field, profile, settings)
                    result = report.result

        outcome = FieldOutcome(
            field=field,
            kind=OutcomeKind.MATCHED,
            result=result,
            remote_unavailable=report.remote_unavailable,
            widget_kind=widget_kind,
            report=report,
        )

        if not result.matched:
            outcome.kind = OutcomeKind.NO_MATCH
            outcome.message = result.reasoning
            await self._release(control)
            return outcome

        if _held_back(outcome, settings):
            await self._release(control)
            return outcome

        if preview or control is None:
            outcome.message = f"Would select '{result.option.text}'"
            await self._release(control)
            return outcome

        if await self.adapter.select(control, result.option):
            outcome.kind = OutcomeKind.FILLED
            outcome.filled = True
            outcome.message = f"Selected '{result.option.text}'"
            return outcome

        failed = await self._adapter_failure(target, f"Could not select '{result.option.text}'")
        failed.result = result
        failed.report = report
        failed.remote_unavailable = report.remote_unavailable
        return failed

    async def _explain(self, field: FieldDescriptor, profile: CanonicalProfile, settings: Settings) -> MatchReport:
        if settings.allow_remote:
            # The remote client is synchronous; keep the event loop free while it runs.
            return await asyncio.to_thread(self.engine.explain, field, profile, allow_remote=True)
        return self.engine.explain(field, profile, allow_remote=False)

    async def _process_checkbox(
        self,
        target: FieldTarget,
        profile: CanonicalProfile,
        *,
        settings: Settings,
        preview: bool,
    ) -> FieldOutcome:
        decision = decide_checkbox(target.field, profile)
        outcome = FieldOutcome(field=target.field, kind=OutcomeKind.MATCHED, message=decision.reasoning)
        if not decision.known:
            outcome.kind = OutcomeKind.NO_MATCH
            return outcome
        state = "checked" if decision.checked else "unchecked"
        outcome.result = MatchResult(
            option=Option(text=state, value=str(decision.checked).lower()),
            confidence=decision.confidence,
            method=MatchMethod.CATEGORY,
            reasoning=decision.reasoning,
            source=decision.source,
        )
        if _held_back(outcome, settings):
            return outcome
        if preview or target.control is None:
            outcome.message = f"Would leave the box {state}"
            return outcome

        timeout_ms = self.adapter.timings.select_ms
        await self._perform(outcome, target.control.set_checked(decision.checked, timeout=timeout_ms), "Checkbox")
        if outcome.filled:
            outcome.message = f"Box {state}"
        return outcome

    async def _process_radio(
        self,
        target: FieldTarget,
        profile: CanonicalProfile,
        *,
        settings: Settings,
        preview: bool,
    ) -> FieldOutcome:
        field = target.field
        control = target.control
        timeout_ms = self.adapter.timings.open_ms
        if control is not None and not field.options:
            try:
                options = await asyncio.wait_for(read_radio_options(control), timeout_ms / 1000)
            except (asyncio.TimeoutError, PlaywrightTimeoutError):
                return FieldOutcome(
                    field=field,
                    kind=OutcomeKind.ADAPTER_TIMEOUT,
                    message=f"Radio buttons could not be read within {timeout_ms} ms",
                    widget_kind="radio",
                )
            field = field.with_options(options)

        report = await self._explain(field, profile, settings)
        result = report.result
        outcome = FieldOutcome(
            field=field,
            kind=OutcomeKind.MATCHED,
            result=result,
            remote_unavailable=report.remote_unavailable,
            widget_kind="radio",
            report=report,
        )
        if not result.matched:
            outcome.kind = OutcomeKind.NO_MATCH
            outcome.message = result.reasoning
            return outcome
        if _held_back(outcome, settings):
            return outcome
        if preview or control is None:
            outcome.message = f"Would choose '{result.option.text}'"
            return outcome

        select_ms = self.adapter.timings.select_ms
        await self._perform(outcome, check_radio(control, result.option, select_ms), "Radio button")
        if outcome.filled:
            outcome.message = f"Chose '{result.option.text}'"
        return outcome

    async def _perform(self, outcome: FieldOutcome, gesture: Awaitable[Any], description: str) -> None:
        """Await a direct control gesture and record how it ended on ``outcome``."""

        timeout_ms = self.adapter.timings.select_ms
        try:
            await asyncio.wait_for(gesture, timeout_ms / 1000)
        except (asyncio.TimeoutError, PlaywrightTimeoutError):
            outcome.kind = OutcomeKind.ADAPTER_TIMEOUT
            outcome.message = f"{description} did not respond within {timeout_ms} ms"
        except WidgetShapeError as exc:
            outcome.kind = OutcomeKind.ADAPTER_UNSUPPORTED_SHAPE
            outcome.message = f"{description} could not be set: {exc}"
        except Exception as exc:
            logger.warning("Control gesture failed", extra={"control": description}, exc_info=True)
            outcome.kind = OutcomeKind.ADAPTER_ERROR
            outcome.message = f"{description} could not be set: {type(exc).__name__}: {exc}"
        else:
            outcome.kind = OutcomeKind.FILLED
            outcome.filled = True

    def _failed(self, control: Any) -> bool:
        session = self.adapter.peek(control)
        return session is not None and session.failure is not None

    async def _adapter_failure(self, target: FieldTarget, message: str) -> FieldOutcome:
        session = self.adapter.peek(target.control)
        failure = session.failure if session is not None else None
        kind = _FAILURE_OUTCOMES.get(failure, OutcomeKind.ADAPTER_ERROR)
        detail = session.failure_detail if session is not None and session.failure_detail else message
        outcome = FieldOutcome(
            field=target.field,
            kind=kind,
            result=MatchResult.none(detail),
            message=f"{message}: {detail}" if detail != message else message,
            widget_kind=session.kind.value if session is not None else None,
        )
        await self.adapter.close(target.control)
        return outcome

    async def _release(self, control: Any) -> None:
        if control is not None and self.adapter.peek(control) is not None:
            await self.adapter.close(control)


def _held_back(outcome: FieldOutcome, settings: Settings) -> bool:
    """Apply the low-confidence policy; True when the field must not be filled."""

    confidence = outcome.result.confidence
    if confidence >= settings.confidence_threshold:
        return False
    outcome.kind = OutcomeKind.LOW_CONFIDENCE
    comparison = f"{confidence:.2f} < {settings.confidence_threshold:.2f}"
    if settings.low_confidence_policy == "confirm":
        outcome.awaiting_confirmation = True
        outcome.message = f"Queued for confirmation ({comparison})"
    else:
        outcome.message = f"Skipped ({comparison})"
    return True


def _remote_client(settings: Settings):
    if not settings.allow_remote:
        return None
    try:
        return build_default_client(settings.remote_model, settings.remote_timeout_seconds)
    except OpenAIError as exc:
        logger.warning("Remote suggestions are allowed but no client could be built", extra={"error": str(exc)})
        return None


def _as_target(target: Union[FieldTarget, FieldDescriptor]) -> FieldTarget:
    if isinstance(target, FieldTarget):
        if not isinstance(target.field, FieldDescriptor):
            raise TypeError(f"FieldTarget.field must be a FieldDescriptor, got {type(target.field).__name__}")
        return target
    if isinstance(target, FieldDescriptor):
        return FieldTarget(field=target)
    raise TypeError(f"Expected FieldTarget or FieldDescriptor, got {type(target).__name__}")


async def autofill(
    targets: Sequence[Union[FieldTarget, FieldDescriptor]],
    profile: Union[CanonicalProfile, Mapping[str, Any]],
    *,
    settings: Optional[Settings] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> AutofillReport:
    """Run one pass with a default engine and adapter."""

    orchestrator = AutofillOrchestrator(settings=settings)
    return await orchestrator.run(targets, profile, cancel_event=cancel_event)


__all__ = ["AutofillOrchestrator", "FieldTarget", "autofill"]
