"""Typed payloads for lifecycle callbacks and browser-originated events."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .models import Cookie, Initiator, StepLocation, Viewport


def unwrap_value(value: Any) -> Any:
    """Unwrap BiDi ``{"type": ..., "value": ...}`` holders."""

    if isinstance(value, dict) and "value" in value:
        return value["value"]
    return value


def normalize_headers(raw: Any) -> dict[str, str] | None:
    """Accept a mapping or a ``[{name, value}]`` list; keys keep their received case."""

    if raw is None:
        return None
    if isinstance(raw, dict):
        return {str(key): str(unwrap_value(value)) for key, value in raw.items()}
    if isinstance(raw, list):
        headers: dict[str, str] = {}
        for item in raw:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            value = unwrap_value(item.get("value"))
            headers[str(item["name"])] = "" if value is None else str(value)
        return headers
    raise ValueError(f"Unsupported header payload: {type(raw).__name__}")


class _Event(BaseModel):
    at: Optional[int] = None


class RunStart(_Event):
    kind: Literal["run-start"] = "run-start"
    capabilities: dict[str, Any] = Field(default_factory=dict)
    spec_files: list[str] = Field(default_factory=list)
    viewport: Optional[Viewport] = None
    user_agent: Optional[str] = None
    base_url: Optional[str] = None


class ScenarioStart(_Event):
    kind: Literal["scenario-start"] = "scenario-start"
    name: str
    feature: str = ""
    tags: list[str] = Field(default_factory=list)
    feature_file: Optional[str] = None


class StepStart(_Event):
    kind: Literal["step-start"] = "step-start"
    keyword: str = ""
    text: str
    location: Optional[StepLocation] = None


class CommandStart(_Event):
    kind: Literal["command-start"] = "command-start"
    name: str
    args: list[Any] = Field(default_factory=list)


class CommandEnd(_Event):
    kind: Literal["command-end"] = "command-end"
    name: str
    args: list[Any] = Field(default_factory=list)
    result: Any = None
    error: Optional[str] = None


class StepEnd(_Event):
    kind: Literal["step-end"] = "step-end"
    passed: bool
    error: Optional[str] = None
    duration: Optional[int] = None


class ScenarioEnd(_Event):
    kind: Literal["scenario-end"] = "scenario-end"
    passed: bool
    error: Optional[str] = None


class RunEnd(_Event):
    kind: Literal["run-end"] = "run-end"
    exit_code: int = 0


class RequestBegun(_Event):
    kind: Literal["request-begun"] = "request-begun"
    request_id: str
    method: str = "GET"
    url: str = ""
    resource_type: Optional[str] = None
    headers: Optional[dict[str, str]] = None
    body: Optional[str] = None
    initiator: Optional[Initiator] = None
    cookies: list[Cookie] = Field(default_factory=list)

    @field_validator("headers", mode="before")
    @classmethod
    def _headers(cls, value: Any) -> dict[str, str] | None:
        return normalize_headers(value)

    @field_validator("body", mode="before")
    @classmethod
    def _body(cls, value: Any) -> Any:
        value = unwrap_value(value)
        return None if value is None else str(value)

    @field_validator("cookies", mode="before")
    @classmethod
    def _cookies(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        cookies = []
        for item in value:
            if isinstance(item, dict) and item.get("name"):
                raw = unwrap_value(item.get("value"))
                cookies.append({**item, "value": "" if raw is None else str(raw)})
        return cookies


class ResponseCompleted(_Event):
    kind: Literal["response-completed"] = "response-completed"
    request_id: str
    status: Optional[int] = None
    status_text: Optional[str] = None
    mime_type: Optional[str] = None
    headers: Optional[dict[str, str]] = None
    content_length: Optional[int] = None
    content_size: Optional[int] = None
    response_time: Optional[int] = None

    @field_validator("headers", mode="before")
    @classmethod
    def _headers(cls, value: Any) -> dict[str, str] | None:
        return normalize_headers(value)


class BodyAvailable(_Event):
    kind: Literal["body-available"] = "body-available"
    request_id: str
    value: str
    encoding: Literal["string", "base64"] = "string"


class ConsoleMessage(_Event):
    kind: Literal["console-entry"] = "console-entry"
    level: str = "log"
    text: str = ""
    source_url: Optional[str] = None
    args: list[str] = Field(default_factory=list)


TraceEvent = Annotated[
    Union[
        RunStart,
        ScenarioStart,
        StepStart,
        CommandStart,
        CommandEnd,
        StepEnd,
        ScenarioEnd,
        RunEnd,
        RequestBegun,
        ResponseCompleted,
        BodyAvailable,
        ConsoleMessage,
    ],
    Field(discriminator="kind"),
]
