"""Static dispatch table describing how each automation command is traced."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .models import ActionCategory, ActionType

ValueExtractor = Callable[[Sequence[Any]], Optional[str]]


def _coerce_value(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "".join(str(part) for part in value)
    return None


def first_arg(args: Sequence[Any]) -> str | None:
    return _coerce_value(args[0]) if len(args) > 0 else None


def second_arg(args: Sequence[Any]) -> str | None:
    return _coerce_value(args[1]) if len(args) > 1 else None


def no_value(args: Sequence[Any]) -> str | None:
    return None


@dataclass(frozen=True)
class CommandSpec:
    """How one command name is classified and which argument carries its value."""

    category: ActionCategory = "other"
    action_type: ActionType = "action"
    value: ValueExtractor = no_value
    targets_element: bool = True
    records_click_point: bool = False

    @property
    def is_navigation(self) -> bool:
        return self.action_type == "navigation"


_CLICK = CommandSpec(category="click", records_click_point=True)
_FILL = CommandSpec(category="fill", value=second_arg)
_SELECT = CommandSpec(category="select")
_NAVIGATE = CommandSpec(category="navigate", action_type="navigation", targets_element=False)
_WAIT = CommandSpec(category="wait", action_type="wait")
_SCROLL = CommandSpec(category="scroll")

COMMAND_TABLE: dict[str, CommandSpec] = {
    "click": _CLICK,
    "doubleClick": _CLICK,
    "rightClick": CommandSpec(category="click"),
    "tap": _CLICK,
    "setValue": _FILL,
    "addValue": _FILL,
    "clearValue": CommandSpec(category="fill"),
    "selectByVisibleText": CommandSpec(category="select", value=second_arg),
    "selectByAttribute": _SELECT,
    "selectByIndex": _SELECT,
    "keys": CommandSpec(category="keyboard", value=first_arg, targets_element=False),
    "url": CommandSpec(category="navigate", action_type="navigation", value=first_arg, targets_element=False),
    "navigateTo": CommandSpec(
        category="navigate", action_type="navigation", value=first_arg, targets_element=False
    ),
    "back": _NAVIGATE,
    "forward": _NAVIGATE,
    "refresh": _NAVIGATE,
    "waitForDisplayed": _WAIT,
    "waitForEnabled": _WAIT,
    "waitForExist": _WAIT,
    "waitForClickable": _WAIT,
    "pause": _WAIT,
    "scrollIntoView": _SCROLL,
    "scroll": _SCROLL,
}

DEFAULT_COMMANDS_TO_TRACE: list[str] = [
    "click", "doubleClick", "rightClick",
    "setValue", "addValue", "clearValue",
    "selectByVisibleText", "selectByAttribute", "selectByIndex",
    "moveTo", "dragAndDrop",
    "scrollIntoView", "scroll",
    "waitForDisplayed", "waitForEnabled", "waitForExist", "waitForClickable",
    "url", "navigateTo", "back", "forward", "refresh",
    "switchToFrame", "switchToParentFrame", "switchToWindow",
    "keys", "uploadFile",
    "newWindow", "closeWindow",
    "pause",
]

_UNLISTED = CommandSpec()


def spec_for(command_name: str) -> CommandSpec:
    """Return the table entry for a command; unlisted commands classify as ``other``."""

    return COMMAND_TABLE.get(command_name, _UNLISTED)


def extract_selector(args: Sequence[Any]) -> str | None:
    if not args:
        return None
    first = args[0]
    if isinstance(first, str):
        return first
    if isinstance(first, dict):
        selector = first.get("selector")
        return selector if isinstance(selector, str) else None
    selector = getattr(first, "selector", None)
    return selector if isinstance(selector, str) else None


def extract_value(command_name: str, args: Sequence[Any]) -> str | None:
    return spec_for(command_name).value(args)
