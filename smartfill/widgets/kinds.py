"""Classify interactive controls into a closed set of widget kinds.

Classification is a pure function of a control's static shape (tag, ARIA
role, declared attributes and class names), read once when a session is
opened. Class-name fingerprints come from the component libraries seen on
real forms: React Select, Material UI, Vue Select, Angular Material,
ng-select, Select2, Chosen, Selectize, Bootstrap, Ant Design, Element UI,
PrimeNG and generic typeahead widgets.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class WidgetKind(str, Enum):
    STANDARD = "standard"
    SEARCHABLE = "searchable"
    CUSTOM_LISTBOX = "custom_listbox"
    UNKNOWN = "unknown"


# Ordered: searchable fingerprints must win over the listbox ones they embed
# ("ant-select-show-search" also contains "ant-select").
CLASS_FINGERPRINTS: Tuple[Tuple[str, WidgetKind], ...] = (
    ("react-select", WidgetKind.SEARCHABLE),
    ("select__control", WidgetKind.SEARCHABLE),
    ("muiautocomplete", WidgetKind.SEARCHABLE),
    ("vs__", WidgetKind.SEARCHABLE),
    ("v-select", WidgetKind.SEARCHABLE),
    ("vue-select", WidgetKind.SEARCHABLE),
    ("select2", WidgetKind.SEARCHABLE),
    ("chosen-container", WidgetKind.SEARCHABLE),
    ("selectize", WidgetKind.SEARCHABLE),
    ("ng-select", WidgetKind.SEARCHABLE),
    ("typeahead", WidgetKind.SEARCHABLE),
    ("autocomplete", WidgetKind.SEARCHABLE),
    ("search-select", WidgetKind.SEARCHABLE),
    ("ant-select-show-search", WidgetKind.SEARCHABLE),
    ("muiselect", WidgetKind.CUSTOM_LISTBOX),
    ("mat-select", WidgetKind.CUSTOM_LISTBOX),
    ("mat-mdc-select", WidgetKind.CUSTOM_LISTBOX),
    ("ant-select", WidgetKind.CUSTOM_LISTBOX),
    ("el-select", WidgetKind.CUSTOM_LISTBOX),
    ("p-dropdown", WidgetKind.CUSTOM_LISTBOX),
    ("bootstrap-select", WidgetKind.CUSTOM_LISTBOX),
    ("dropdown-toggle", WidgetKind.CUSTOM_LISTBOX),
    ("ui-selectmenu", WidgetKind.CUSTOM_LISTBOX),
)

VIRTUALIZATION_FINGERPRINTS: Tuple[str, ...] = (
    "react-window",
    "react-virtualized",
    "virtual-list",
    "virtualized",
    "recyclerlistview",
    "cdk-virtual-scroll",
)

# Menus whose entries open submenus rather than being chosen directly.
NESTED_FINGERPRINTS: Tuple[str, ...] = ("dropdown-submenu", "has-children", "nested-options")

_LISTBOX_TAGS = frozenset({"mat-select", "ng-select", "p-dropdown", "el-select"})
_HASPOPUP_LISTBOX = frozenset({"listbox", "true", "menu"})


@dataclass(frozen=True, slots=True)
class ControlShape:
    """Static structural signals of a control, as read from the page."""

    tag: str = ""
    role: str = ""
    input_type: str = ""
    class_name: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)
    # Class names of the nearest ancestors; wrappers often carry the library class.
    context_classes: str = ""
    # True when the control holds submenu markup.
    nested: bool = False

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ControlShape":
        attributes = payload.get("attributes") or {}
        return cls(
            tag=str(payload.get("tag") or payload.get("tagName") or "").lower(),
            role=str(payload.get("role") or attributes.get("role") or "").lower(),
            input_type=str(payload.get("type") or payload.get("input_type") or attributes.get("type") or "").lower(),
            class_name=str(payload.get("class_name") or payload.get("className") or attributes.get("class") or ""),
            attributes={str(key).lower(): "" if value is None else str(value) for key, value in attributes.items()},
            context_classes=str(payload.get("context_classes") or payload.get("contextClasses") or ""),
            nested=bool(payload.get("nested", False)),
        )

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "role": self.role,
            "type": self.input_type,
            "class_name": self.class_name,
            "attributes": dict(self.attributes),
            "context_classes": self.context_classes,
            "nested": self.nested,
        }


def classify_widget(shape: ControlShape) -> WidgetKind:
    tag = shape.tag.lower()
    role = shape.role.lower()
    if tag == "select":
        return WidgetKind.STANDARD

    autocomplete = (shape.attribute("aria-autocomplete") or "").lower()
    if autocomplete and autocomplete != "none":
        return WidgetKind.SEARCHABLE
    if tag == "input" and role == "combobox":
        return WidgetKind.SEARCHABLE

    classes = f"{shape.class_name} {shape.context_classes}".lower()
    for fingerprint, kind in CLASS_FINGERPRINTS:
        if fingerprint in classes:
            return kind

    if tag in _LISTBOX_TAGS:
        return WidgetKind.CUSTOM_LISTBOX
    if role in ("listbox", "combobox"):
        return WidgetKind.CUSTOM_LISTBOX
    if (shape.attribute("aria-haspopup") or "").lower() in _HASPOPUP_LISTBOX:
        return WidgetKind.CUSTOM_LISTBOX
    return WidgetKind.UNKNOWN


def is_virtualized(shape: ControlShape) -> bool:
    """True when the control renders only a window of its options."""

    classes = f"{shape.class_name} {shape.context_classes}".lower()
    return any(fingerprint in classes for fingerprint in VIRTUALIZATION_FINGERPRINTS)


def is_multi_level(shape: ControlShape) -> bool:
    """True when picking an option may require opening a submenu first."""

    if shape.nested:
        return True
    classes = f"{shape.class_name} {shape.context_classes}".lower()
    return any(fingerprint in classes for fingerprint in NESTED_FINGERPRINTS)
