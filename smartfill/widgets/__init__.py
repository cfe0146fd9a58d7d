"""Widget interaction layer: classify controls and drive them through Playwright."""

from .adapter import WidgetAdapter
from .drivers import (
    CustomListboxDriver,
    SearchableDriver,
    StandardSelectDriver,
    UnknownDriver,
    WidgetDriver,
    WidgetShapeError,
    WidgetTimings,
    check_radio,
    driver_for,
    read_radio_options,
    read_shape,
)
from .kinds import NESTED_FINGERPRINTS, ControlShape, WidgetKind, classify_widget, is_multi_level, is_virtualized
from .session import (
    TRANSITIONS,
    WidgetEvent,
    WidgetFailure,
    WidgetSession,
    WidgetState,
    WidgetTransitionError,
)

__all__ = [
    "TRANSITIONS",
    "NESTED_FINGERPRINTS",
    "ControlShape",
    "CustomListboxDriver",
    "SearchableDriver",
    "StandardSelectDriver",
    "UnknownDriver",
    "WidgetAdapter",
    "WidgetDriver",
    "WidgetEvent",
    "WidgetFailure",
    "WidgetKind",
    "WidgetSession",
    "WidgetShapeError",
    "WidgetState",
    "WidgetTransitionError",
    "WidgetTimings",
    "check_radio",
    "classify_widget",
    "driver_for",
    "is_multi_level",
    "is_virtualized",
    "read_radio_options",
    "read_shape",
]
