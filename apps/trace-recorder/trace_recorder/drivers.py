"""Loading automation drivers from ``module:factory`` references."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Callable

import structlog

from .capture import AutomationDriver

LOGGER = structlog.get_logger("trace_recorder")

DriverFactory = Callable[[], AutomationDriver]

DRIVER_METHODS = ("take_screenshot", "get_dom", "resolve_element", "get_page_info")


def parse_reference(reference: str) -> tuple[str, str]:
    module_name, _, factory_name = reference.partition(":")
    if not module_name or not factory_name:
        raise ValueError(f"Driver reference '{reference}' must look like 'module:factory'")
    return module_name, factory_name


def missing_driver_methods(driver: Any) -> list[str]:
    return [name for name in DRIVER_METHODS if not callable(getattr(driver, name, None))]


class DriverRegistry:
    """Imports driver factories from a search root (added to ``sys.path`` on first use)."""

    def __init__(self, search_root: Path) -> None:
        self.search_root = search_root
        self._factories: dict[str, DriverFactory] = {}

    def resolve(self, reference: str) -> DriverFactory:
        factory = self._factories.get(reference)
        if factory is not None:
            return factory

        module_name, factory_name = parse_reference(reference)
        root = str(self.search_root)
        if root not in sys.path:
            sys.path.insert(0, root)
        module = importlib.import_module(module_name)
        factory = getattr(module, factory_name, None)
        if not callable(factory):
            raise AttributeError(f"Driver factory {factory_name} not found in {module_name}")
        self._factories[reference] = factory
        return factory

    def create(self, reference: str) -> AutomationDriver:
        """Build a driver and check that it offers every capture call."""

        driver = self.resolve(reference)()
        missing = missing_driver_methods(driver)
        if missing:
            raise TypeError(f"Driver from {reference} lacks {', '.join(missing)}")
        LOGGER.debug("driver_loaded", reference=reference, driver=type(driver).__name__)
        return driver
