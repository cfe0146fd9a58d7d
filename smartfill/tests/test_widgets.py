import asyncio
import time

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from smartfill.matching import Option
from smartfill.widgets import (
    ControlShape,
    WidgetAdapter,
    WidgetFailure,
    WidgetKind,
    WidgetSession,
    WidgetState,
    WidgetTimings,
    WidgetTransitionError,
    classify_widget,
    is_multi_level,
)
from smartfill.widgets.drivers import NATIVE_OPTIONS_SCRIPT, SHAPE_SCRIPT

FAST = WidgetTimings(open_ms=100, search_ms=200, select_ms=100, type_delay_ms=0, settle_ms=0)


class FakeSelect:
    """A native <select> as seen through a Playwright locator."""

    def __init__(self, texts, *, delay=0.0, fail_select=False):
        self.texts = list(texts)
        self.delay = delay
        self.fail_select = fail_select
        self.selected = None

    async def evaluate(self, script, timeout=None):
        if script == SHAPE_SCRIPT:
            return {"tag": "select", "attributes": {"name": "country"}}
        assert script == NATIVE_OPTIONS_SCRIPT
        return [
            {"text": text, "value": text.lower(), "disabled": False, "selected": False, "index": index}
            for index, text in enumerate(self.texts)
        ]

    async def wait_for(self, state="visible", timeout=None):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def select_option(self, index=None, value=None, label=None, timeout=None):
        if self.fail_select:
            raise PlaywrightError("Element is not attached to the DOM")
        self.selected = index


class FakeDiv:
    async def evaluate(self, script, timeout=None):
        return {"tag": "div", "class_name": "wrapper", "attributes": {}}


class FakeKeyboard:
    def __init__(self):
        self.pressed = []

    async def press(self, key):
        self.pressed.append(key)


class FakeRenderedOption:
    def __init__(self, menu, position):
        self.menu = menu
        self.position = position

    @property
    def text(self):
        return self.menu.rendered()[self.position]

    async def click(self, timeout=None):
        self.menu.clicked.append(self.text)
        self.menu.open = False

    async def wait_for(self, state="visible", timeout=None):
        showing = self.menu.open and self.position < len(self.menu.rendered())
        if state == "visible" and not showing:
            raise PlaywrightTimeoutError("option not visible")
        if state == "hidden" and showing:
            raise PlaywrightTimeoutError("option still visible")

    async def get_attribute(self, name, timeout=None):
        return None


class FakeMenu:
    """Options rendered in a popup; optionally only after text is typed."""

    def __init__(self, texts, *, render_on_type=False):
        self.texts = list(texts)
        self.render_on_type = render_on_type
        self.typed = ""
        self.open = False
        self.clicked = []

    def rendered(self):
        if not self.open or (self.render_on_type and not self.typed):
            return []
        needle = self.typed.lower()
        return [text for text in self.texts if needle in text.lower()]

    def locator(self, selector):
        return self

    @property
    def first(self):
        return FakeRenderedOption(self, 0)

    def nth(self, index):
        return FakeRenderedOption(self, index)

    async def evaluate_all(self, script):
        return [
            {"text": text, "value": "", "disabled": False, "selected": False, "index": index}
            for index, text in enumerate(self.rendered())
        ]


class FakePage:
    def __init__(self, menu):
        self.menu = menu
        self.keyboard = FakeKeyboard()
        self.selectors = []

    def locator(self, selector):
        self.selectors.append(selector)
        return self.menu


class FakeCombobox:
    """A framework dropdown trigger (listbox or searchable input)."""

    def __init__(self, shape, menu):
        self.shape = shape
        self.menu = menu
        self.page = FakePage(menu)
        self.clicks = 0

    async def evaluate(self, script, timeout=None):
        return self.shape

    async def click(self, timeout=None):
        self.clicks += 1
        self.menu.open = True

    async def fill(self, value, timeout=None):
        self.menu.typed = value

    async def press_sequentially(self, text, delay=None, timeout=None):
        self.menu.typed += text


class FakeNestedEntry:
    def __init__(self, menu, text):
        self.menu = menu
        self.text = text

    async def hover(self, timeout=None):
        self.menu.hovered.append(self.text)

    async def click(self, timeout=None):
        if self.text in self.menu.tree:
            self.menu.expanded.append(self.text)
        else:
            self.menu.clicked.append(self.text)
            self.menu.open = False

    async def wait_for(self, state="visible", timeout=None):
        showing = self.text in self.menu.rendered()
        if state == "visible" and not showing:
            raise PlaywrightTimeoutError("entry not visible")
        if state == "hidden" and showing:
            raise PlaywrightTimeoutError("entry still visible")

    async def get_attribute(self, name, timeout=None):
        return None


class FakeNestedMatches:
    def __init__(self, menu, texts):
        self.menu = menu
        self.texts = texts

    async def count(self):
        return len(self.texts)

    @property
    def first(self):
        return FakeNestedEntry(self.menu, self.texts[0])


class FakeNestedMenu:
    """A menu whose parent entries reveal their children when clicked."""

    def __init__(self, tree):
        self.tree = tree
        self.open = False
        self.expanded = []
        self.hovered = []
        self.clicked = []

    def rendered(self):
        if not self.open:
            return []
        texts = []
        for parent, children in self.tree.items():
            texts.append(parent)
            if parent in self.expanded:
                texts.extend(children)
        return texts

    def locator(self, selector):
        return self

    def filter(self, has_text=None):
        needle = (has_text or "").lower()
        return FakeNestedMatches(self, [text for text in self.rendered() if needle in text.lower()])

    @property
    def first(self):
        rendered = self.rendered()
        return FakeNestedEntry(self, rendered[0] if rendered else "")

    def nth(self, index):
        return FakeNestedEntry(self, self.rendered()[index])

    async def evaluate_all(self, script):
        return [{"text": text, "value": "", "index": index} for index, text in enumerate(self.rendered())]


@pytest.mark.parametrize(
    ("shape", "expected"),
    [
        (ControlShape(tag="select"), WidgetKind.STANDARD),
        (ControlShape(tag="input", role="combobox"), WidgetKind.SEARCHABLE),
        (ControlShape(tag="div", attributes={"aria-autocomplete": "list"}), WidgetKind.SEARCHABLE),
        (ControlShape(tag="div", class_name="react-select__control"), WidgetKind.SEARCHABLE),
        (ControlShape(tag="div", class_name="ant-select ant-select-show-search"), WidgetKind.SEARCHABLE),
        (ControlShape(tag="div", class_name="ant-select"), WidgetKind.CUSTOM_LISTBOX),
        (ControlShape(tag="div", context_classes="MuiSelect-root"), WidgetKind.CUSTOM_LISTBOX),
        (ControlShape(tag="mat-select"), WidgetKind.CUSTOM_LISTBOX),
        (ControlShape(tag="button", attributes={"aria-haspopup": "listbox"}), WidgetKind.CUSTOM_LISTBOX),
        (ControlShape(tag="div", role="listbox"), WidgetKind.CUSTOM_LISTBOX),
        (ControlShape(tag="div", attributes={"aria-autocomplete": "none"}), WidgetKind.UNKNOWN),
        (ControlShape(tag="div"), WidgetKind.UNKNOWN),
        (ControlShape(), WidgetKind.UNKNOWN),
    ],
)
def test_classify_widget(shape, expected):
    assert classify_widget(shape) is expected


def test_control_shape_from_page_payload():
    shape = ControlShape.from_dict(
        {"tag": "INPUT", "attributes": {"role": "combobox", "aria-autocomplete": "list", "class": "x"}}
    )

    assert shape.tag == "input"
    assert shape.role == "combobox"
    assert shape.attribute("aria-autocomplete") == "list"


def test_session_transitions_follow_the_state_machine():
    session = WidgetSession(control=object(), kind=WidgetKind.STANDARD)

    for target in (WidgetState.OPENING, WidgetState.OPEN, WidgetState.SEARCHING, WidgetState.SELECTING, WidgetState.CLOSED):
        session.transition(target)

    assert [event.state for event in session.history][-1] is WidgetState.CLOSED
    with pytest.raises(WidgetTransitionError):
        session.transition(WidgetState.SELECTING)


def test_session_failure_keeps_first_cause():
    session = WidgetSession(control=object(), kind=WidgetKind.UNKNOWN)

    session.fail(WidgetFailure.UNSUPPORTED_SHAPE, "no shape")
    session.fail(WidgetFailure.TIMEOUT, "later")

    assert session.state is WidgetState.ERROR
    assert session.failure is WidgetFailure.UNSUPPORTED_SHAPE
    assert session.to_dict()["history"][0]["state"] == "opening"
    session.transition(WidgetState.CLOSED)
    assert session.terminal


@pytest.mark.asyncio
async def test_standard_select_flow():
    adapter = WidgetAdapter(FAST)
    control = FakeSelect(["Canada", "Mexico", "United States"])

    assert await adapter.open(control) is True
    assert adapter.peek(control).kind is WidgetKind.STANDARD
    options = await adapter.enumerate_options(control)
    assert [option.text for option in options] == ["Canada", "Mexico", "United States"]

    assert await adapter.select(control, options[2]) is True
    assert control.selected == 2
    assert adapter.peek(control) is None


@pytest.mark.asyncio
async def test_native_select_search_filters_nothing_without_a_search_box():
    adapter = WidgetAdapter(FAST)
    control = FakeSelect(["Canada", "Mexico"])

    await adapter.open(control)

    assert await adapter.search(control, "can") == []
    assert adapter.peek(control).state is WidgetState.OPEN


@pytest.mark.asyncio
async def test_unknown_shape_is_refused_promptly():
    adapter = WidgetAdapter(FAST)
    control = FakeDiv()

    started = time.monotonic()
    opened = await adapter.open(control)

    assert opened is False
    assert time.monotonic() - started < 1.0
    session = adapter.peek(control)
    assert session.state is WidgetState.ERROR
    assert session.failure is WidgetFailure.UNSUPPORTED_SHAPE
    assert await adapter.enumerate_options(control) == []
    assert await adapter.select(control, Option(text="x")) is False


@pytest.mark.asyncio
async def test_slow_control_times_out():
    adapter = WidgetAdapter(FAST)
    control = FakeSelect(["Canada"], delay=5)

    started = time.monotonic()
    opened = await adapter.open(control)

    assert opened is False
    assert time.monotonic() - started < 2.0
    assert adapter.peek(control).failure is WidgetFailure.TIMEOUT


@pytest.mark.asyncio
async def test_driver_errors_become_interaction_failures():
    adapter = WidgetAdapter(FAST)
    control = FakeSelect(["Canada"], fail_select=True)

    await adapter.open(control)
    options = await adapter.enumerate_options(control)

    assert await adapter.select(control, options[0]) is False
    assert adapter.peek(control).failure is WidgetFailure.INTERACTION


@pytest.mark.asyncio
async def test_close_is_idempotent():
    adapter = WidgetAdapter(FAST)
    control = FakeSelect(["Canada"], delay=5)

    await adapter.open(control)

    assert await adapter.close(control) is True
    assert adapter.peek(control) is None
    assert await adapter.close(control) is True
    assert await adapter.close(FakeDiv()) is True


@pytest.mark.asyncio
async def test_custom_listbox_clicks_rendered_option():
    menu = FakeMenu(["Small", "Medium", "Large"])
    control = FakeCombobox({"tag": "div", "role": "combobox", "attributes": {"aria-controls": "size-menu"}}, menu)
    adapter = WidgetAdapter(FAST)

    assert await adapter.open(control) is True
    assert adapter.peek(control).kind is WidgetKind.CUSTOM_LISTBOX
    options = await adapter.enumerate_options(control)
    assert [option.text for option in options] == ["Small", "Medium", "Large"]

    assert await adapter.select(control, options[1]) is True
    assert menu.clicked == ["Medium"]
    assert control.page.selectors[0] == '[id="size-menu"]'


@pytest.mark.asyncio
async def test_custom_listbox_close_presses_escape():
    menu = FakeMenu(["Small"])
    control = FakeCombobox({"tag": "button", "attributes": {"aria-haspopup": "listbox"}}, menu)
    adapter = WidgetAdapter(FAST)

    await adapter.open(control)

    assert await adapter.close(control) is True
    assert control.page.keyboard.pressed == ["Escape"]


@pytest.mark.asyncio
async def test_custom_listbox_without_rendered_options_times_out():
    menu = FakeMenu([])
    control = FakeCombobox({"tag": "div", "class_name": "mat-select"}, menu)
    adapter = WidgetAdapter(FAST)

    assert await adapter.open(control) is False
    assert adapter.peek(control).failure is WidgetFailure.TIMEOUT


@pytest.mark.asyncio
async def test_searchable_control_types_and_reads_filtered_options():
    menu = FakeMenu(["Canada", "Cameroon", "Mexico"], render_on_type=True)
    control = FakeCombobox({"tag": "input", "role": "combobox", "attributes": {}}, menu)
    adapter = WidgetAdapter(FAST)

    assert await adapter.open(control) is True
    assert await adapter.enumerate_options(control) == []

    found = await adapter.search(control, "Ca")
    assert [option.text for option in found] == ["Canada", "Cameroon"]
    assert adapter.peek(control).state is WidgetState.OPEN

    assert await adapter.select(control, found[1]) is True
    assert menu.clicked == ["Cameroon"]


@pytest.mark.asyncio
async def test_search_without_results_times_out():
    menu = FakeMenu(["Canada"], render_on_type=True)
    control = FakeCombobox({"tag": "input", "role": "combobox", "attributes": {}}, menu)
    adapter = WidgetAdapter(FAST)

    await adapter.open(control)

    assert await adapter.search(control, "zzz") == []
    assert adapter.peek(control).failure is WidgetFailure.TIMEOUT


NESTED_SHAPE = {"tag": "button", "attributes": {"aria-haspopup": "menu"}, "nested": True}


@pytest.mark.asyncio
async def test_nested_menu_opens_each_level_before_selecting():
    menu = FakeNestedMenu({"Engineering": ["Backend", "Frontend"], "Design": ["Brand"]})
    control = FakeCombobox(NESTED_SHAPE, menu)
    adapter = WidgetAdapter(FAST)

    assert await adapter.open(control) is True
    assert is_multi_level(adapter.peek(control).shape)
    assert await adapter.select_path(control, ["Engineering", "Backend"]) is True

    assert menu.hovered == ["Engineering"]
    assert menu.expanded == ["Engineering"]
    assert menu.clicked == ["Backend"]
    assert adapter.peek(control) is None


@pytest.mark.asyncio
async def test_nested_menu_with_unknown_parent_is_unsupported():
    menu = FakeNestedMenu({"Engineering": ["Backend"]})
    control = FakeCombobox(NESTED_SHAPE, menu)
    adapter = WidgetAdapter(FAST)

    await adapter.open(control)

    assert await adapter.select(control, Option(text="Backend", path=("Sales",))) is False
    assert adapter.peek(control).failure is WidgetFailure.UNSUPPORTED_SHAPE
    assert menu.clicked == []


def test_multi_level_shapes():
    assert is_multi_level(ControlShape(tag="ul", class_name="dropdown-menu", context_classes="dropdown-submenu"))
    assert is_multi_level(ControlShape.from_dict(NESTED_SHAPE))
    assert not is_multi_level(ControlShape(tag="div", role="listbox"))
    assert Option.from_dict({"text": "Backend", "path": "Engineering > Software"}).path == ("Engineering", "Software")


class KeyErrorSelect(FakeSelect):
    async def select_option(self, index=None, value=None, label=None, timeout=None):
        raise KeyError("index")


@pytest.mark.asyncio
async def test_unexpected_driver_exceptions_become_interaction_failures():
    adapter = WidgetAdapter(FAST)
    control = KeyErrorSelect(["Canada"])

    await adapter.open(control)
    options = await adapter.enumerate_options(control)

    assert await adapter.select(control, options[0]) is False
    assert adapter.peek(control).failure is WidgetFailure.INTERACTION
    assert "KeyError" in adapter.peek(control).failure_detail
