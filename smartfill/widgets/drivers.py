"""Playwright drivers, one per :class:`WidgetKind`.

Drivers perform the concrete gestures (click, type, select) and raise on
failure; the :class:`~smartfill.widgets.adapter.WidgetAdapter` owns timeouts,
state transitions and turning exceptions into ``False`` / ``[]``.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import Locator
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..matching.types import Option
from ..utils.text import normalize_text
from .kinds import ControlShape, WidgetKind

logger = logging.getLogger(__name__)


class WidgetShapeError(RuntimeError):
    """Raised when a control does not have the structure its driver needs."""


@dataclass(frozen=True, slots=True)
class WidgetTimings:
    """Bounds for each suspending widget operation, in milliseconds."""

    open_ms: int = 1000
    search_ms: int = 2000
    select_ms: int = 1000
    type_delay_ms: int = 50
    settle_ms: int = 150


OPTION_SELECTOR = ", ".join(
    (
        '[role="option"]',
        '[role="menuitem"]',
        ".react-select__option",
        ".MuiMenuItem-root",
        "mat-option",
        ".mat-mdc-option",
        ".ant-select-item-option",
        ".el-select-dropdown__item",
        ".vs__dropdown-option",
        ".select2-results__option",
        ".chosen-results li",
        ".ng-option",
        ".p-dropdown-item",
        ".dropdown-item",
        "li[data-value]",
        "[data-option-value]",
    )
)

SHAPE_SCRIPT = """
el => {
  const classOf = node => (node && (typeof node.className === 'string' ? node.className : node.getAttribute('class'))) || '';
  const parent = el.parentElement;
  const grandparent = parent ? parent.parentElement : null;
  return {
    tag: el.tagName.toLowerCase(),
    role: el.getAttribute('role') || '',
    type: el.getAttribute('type') || '',
    class_name: classOf(el),
    attributes: Object.fromEntries(Array.from(el.attributes).map(attr => [attr.name, attr.value])),
    context_classes: [classOf(parent), classOf(grandparent)].join(' ').trim(),
    nested: ['.dropdown-submenu', '.has-children', '.nested-options', '[aria-haspopup="menu"]'].some(sel => el.querySelector(sel) !== null),
  };
}
"""

NATIVE_OPTIONS_SCRIPT = """
el => Array.from(el.options || []).map((option, index) => ({
  text: (option.text || '').trim(),
  value: option.value,
  disabled: option.disabled,
  selected: option.selected,
  index,
}))
"""

RENDERED_OPTIONS_SCRIPT = """
nodes => nodes.map((node, index) => ({
  text: (node.innerText || node.textContent || '').trim(),
  value: node.getAttribute('data-value') || node.getAttribute('data-option-value') || node.getAttribute('value') || '',
  disabled: node.getAttribute('aria-disabled') === 'true' || /disabled/i.test(node.getAttribute('class') || ''),
  selected: node.getAttribute('aria-selected') === 'true',
  index,
}))
"""


RADIO_SELECTOR = 'input[type="radio"], [role="radio"]'

RADIO_OPTIONS_SCRIPT = """
nodes => nodes.map((node, index) => {
  const labelled = node.labels && node.labels.length ? node.labels[0].innerText : '';
  const wrapper = node.closest('label');
  return {
    text: (labelled || node.getAttribute('aria-label') || (wrapper ? wrapper.innerText : '') || node.textContent || '').trim(),
    value: node.getAttribute('value') || node.getAttribute('data-value') || '',
    disabled: node.disabled === true || node.getAttribute('aria-disabled') === 'true',
    selected: node.checked === true || node.getAttribute('aria-checked') === 'true',
    index,
  };
})
"""

async def read_shape(control: Locator, timeout_ms: int) -> ControlShape:
    payload = await control.evaluate(SHAPE_SCRIPT, timeout=timeout_ms)
    if not isinstance(payload, dict):
        raise WidgetShapeError("Control shape could not be read")
    return ControlShape.from_dict(payload)


def _options_from_payload(payload: Any, handles: Optional[Locator] = None) -> List[Option]:
    options: List[Option] = []
    for item in payload or []:
        if not isinstance(item, dict):
            continue
        option = Option.from_dict(item)
        if handles is not None and option.index is not None:
            option.handle = handles.nth(option.index)
        options.append(option)
    return options


def _filter(options: List[Option], text: str) -> List[Option]:
    needle = normalize_text(text)
    if not needle:
        return list(options)
    return [option for option in options if needle in normalize_text(option.text)]


class WidgetDriver(ABC):
    """Concrete gestures for one widget kind."""

    kind: WidgetKind = WidgetKind.UNKNOWN

    def __init__(self, shape: ControlShape, timings: WidgetTimings) -> None:
        self.shape = shape
        self.timings = timings

    @abstractmethod
    async def open(self, control: Locator) -> None:
        """Make the control's options available."""

    @abstractmethod
    async def options(self, control: Locator) -> List[Option]:
        """Return the options currently rendered, in rendering order."""

    async def search(self, control: Locator, text: str) -> List[Option]:
        raise WidgetShapeError(f"{self.kind.value} controls do not support search")

    @abstractmethod
    async def activate(self, control: Locator, option: Option) -> None:
        """Perform the selection gesture for ``option``."""

    async def dismiss(self, control: Locator) -> None:
        return None

    def describe(self) -> str:
        return f"{self.kind.value} driver"


class StandardSelectDriver(WidgetDriver):
    """Native ``<select>``: options are read from the element, no popup to open."""

    kind = WidgetKind.STANDARD

    async def open(self, control: Locator) -> None:
        await control.wait_for(state="attached", timeout=self.timings.open_ms)

    async def options(self, control: Locator) -> List[Option]:
        payload = await control.evaluate(NATIVE_OPTIONS_SCRIPT, timeout=self.timings.open_ms)
        return _options_from_payload(payload)

    async def search(self, control: Locator, text: str) -> List[Option]:
        return _filter(await self.options(control), text)

    async def activate(self, control: Locator, option: Option) -> None:
        if option.index is not None:
            await control.select_option(index=option.index, timeout=self.timings.select_ms)
        elif option.value:
            await control.select_option(value=option.value, timeout=self.timings.select_ms)
        else:
            await control.select_option(label=option.text, timeout=self.timings.select_ms)


class CustomListboxDriver(WidgetDriver):
    """Framework listbox: click the trigger, pick from a rendered menu, Escape to close."""

    kind = WidgetKind.CUSTOM_LISTBOX

    def option_locator(self, control: Locator) -> Locator:
        owned = self.shape.attribute("aria-controls") or self.shape.attribute("aria-owns")
        if owned:
            return control.page.locator(f'[id="{owned}"]').locator(OPTION_SELECTOR)
        return control.page.locator(OPTION_SELECTOR)

    async def open(self, control: Locator) -> None:
        await control.click(timeout=self.timings.open_ms)
        await self.option_locator(control).first.wait_for(state="visible", timeout=self.timings.open_ms)

    async def options(self, control: Locator) -> List[Option]:
        handles = self.option_locator(control)
        payload = await handles.evaluate_all(RENDERED_OPTIONS_SCRIPT)
        return _options_from_payload(payload, handles)

    async def _rendered(self, control: Locator, text: str) -> Locator:
        matches = self.option_locator(control).filter(has_text=text)
        if await matches.count() == 0:
            raise WidgetShapeError(f"Option '{text}' is not rendered")
        return matches.first

    async def descend(self, control: Locator, path: Sequence[str]) -> None:
        """Open each parent entry of a nested menu in turn."""

        for depth, label in enumerate(path):
            entry = await self._rendered(control, label)
            await entry.hover(timeout=self.timings.select_ms)
            await entry.click(timeout=self.timings.select_ms)
            await asyncio.sleep(self.timings.settle_ms / 1000)
            logger.debug("Opened submenu", extra={"label": label, "depth": depth})

    async def activate(self, control: Locator, option: Option) -> None:
        handle = option.handle
        if option.path:
            await self.descend(control, option.path)
            # Handles read before descending point at the top level.
            handle = None
        if handle is None:
            handle = await self._rendered(control, option.text)
        await handle.click(timeout=self.timings.select_ms)
        try:
            await handle.wait_for(state="hidden", timeout=self.timings.select_ms)
        except PlaywrightTimeoutError:
            # Menus that stay open signal the change through aria-selected instead.
            if await handle.get_attribute("aria-selected", timeout=self.timings.select_ms) != "true":
                raise

    async def dismiss(self, control: Locator) -> None:
        await control.page.keyboard.press("Escape")


class SearchableDriver(CustomListboxDriver):
    """Combobox with a text input: type the target, then read the filtered options."""

    kind = WidgetKind.SEARCHABLE

    def _input(self, control: Locator) -> Locator:
        if self.shape.tag in ("input", "textarea"):
            return control
        return control.locator("input").first

    async def open(self, control: Locator) -> None:
        await control.click(timeout=self.timings.open_ms)
        try:
            await self.option_locator(control).first.wait_for(state="visible", timeout=self.timings.open_ms)
        except PlaywrightTimeoutError:
            # Many comboboxes render nothing until the user types.
            logger.debug("Searchable control opened without rendered options")

    async def search(self, control: Locator, text: str) -> List[Option]:
        target = self._input(control)
        await target.fill("", timeout=self.timings.search_ms)
        await target.press_sequentially(text, delay=self.timings.type_delay_ms, timeout=self.timings.search_ms)
        await asyncio.sleep(self.timings.settle_ms / 1000)
        await self.option_locator(control).first.wait_for(state="visible", timeout=self.timings.search_ms)
        return await self.options(control)


class UnknownDriver(WidgetDriver):
    """Controls with no recognizable shape are refused."""

    kind = WidgetKind.UNKNOWN

    async def open(self, control: Locator) -> None:
        raise WidgetShapeError("Control has no recognizable widget shape")

    async def options(self, control: Locator) -> List[Option]:
        raise WidgetShapeError("Control has no recognizable widget shape")

    async def activate(self, control: Locator, option: Option) -> None:
        raise WidgetShapeError("Control has no recognizable widget shape")


DRIVERS: Dict[WidgetKind, type] = {
    WidgetKind.STANDARD: StandardSelectDriver,
    WidgetKind.SEARCHABLE: SearchableDriver,
    WidgetKind.CUSTOM_LISTBOX: CustomListboxDriver,
    WidgetKind.UNKNOWN: UnknownDriver,
}


def driver_for(kind: WidgetKind, shape: ControlShape, timings: WidgetTimings) -> WidgetDriver:
    return DRIVERS[kind](shape, timings)


async def read_radio_options(group: Locator) -> List[Option]:
    """Return the buttons of a radio group as options, each carrying its own handle."""

    handles = group.locator(RADIO_SELECTOR)
    payload = await handles.evaluate_all(RADIO_OPTIONS_SCRIPT)
    return _options_from_payload(payload, handles)


async def check_radio(group: Locator, option: Option, timeout_ms: int) -> None:
    """Check the radio button behind ``option``; raise when the group has none."""

    button = option.handle
    if button is None:
        candidates = [group.get_by_label(option.text, exact=True)]
        if option.value:
            candidates.insert(0, group.locator(f'input[type="radio"][value="{option.value}"]'))
        for candidate in candidates:
            if await candidate.count():
                button = candidate.first
                break
        else:
            raise WidgetShapeError(f"No radio button for '{option.text}'")
    await button.check(timeout=timeout_ms)
