"""Console and log format selection shared by the recorder and viewer CLIs."""

from __future__ import annotations

import os
from enum import Enum
from typing import Literal

LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"


class OutputFormat(str, Enum):
    """How run summaries are printed."""

    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """Resolve the output format: CLI parameter > environment variable > ``auto``."""

    for candidate in (cli_override, os.environ.get(ENV_VAR_NAME)):
        if not candidate:
            continue
        try:
            return OutputFormat(candidate.lower())
        except ValueError:
            continue
    return OutputFormat.AUTO


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """Resolve the structlog renderer.

    An explicit ``json``/``console``/``plain`` wins; otherwise the output
    format maps ``json`` to JSON lines, ``plain`` to uncoloured text and
    ``auto``/``rich`` to the coloured console renderer.
    """

    if cli_override and cli_override.lower() in ("json", "console", "plain"):
        return cli_override.lower()  # type: ignore[return-value]

    output_format = get_output_format(cli_override)
    if output_format == OutputFormat.JSON:
        return "json"
    if output_format == OutputFormat.PLAIN:
        return "plain"
    return "console"
