"""Records exchanged with the type checker.

Two streams cross the process boundary: the JSON lines the collector plugin
appends while mypy runs in collection mode, and the JSON messages mypy
prints with ``--output json``. Both are validated here before anything else
looks at them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

COLLECTED_SCHEMA_VERSION = 1

TEMPLATE_RENDER = "template_render"
TEMPLATE_CONTEXT = "template_context"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RenderPayload(_Payload):
    """A render call site: the template name as written and its line."""

    template: str
    start_line: int = Field(alias="startLine", ge=1)


class VariablePayload(_Payload):
    """One variable passed to a render call and its inferred type.

    ``type`` is a valid annotation expression; ``modules`` lists the modules
    it refers to, which must be imported wherever the annotation is used.
    """

    name: str
    type: str
    modules: list[str] = Field(default_factory=list)


class ContextPayload(RenderPayload):
    variables: list[VariablePayload] = Field(default_factory=list)


class TemplateRenderRecord(_Payload):
    schema_version: int = COLLECTED_SCHEMA_VERSION
    collector: Literal["template_render"]
    file: str
    data: RenderPayload


class TemplateContextRecord(_Payload):
    schema_version: int = COLLECTED_SCHEMA_VERSION
    collector: Literal["template_context"]
    file: str
    data: ContextPayload


CollectedRecord = Annotated[
    TemplateRenderRecord | TemplateContextRecord,
    Field(discriminator="collector"),
]

_COLLECTED_ADAPTER: TypeAdapter[TemplateRenderRecord | TemplateContextRecord] = TypeAdapter(
    CollectedRecord
)


class MypyMessage(_Payload):
    """One entry of ``mypy --output json``."""

    file: str
    line: int
    column: int | None = None
    message: str
    hint: str | None = None
    code: str | None = None
    severity: Literal["error", "note", "warning"] = "error"


@dataclass(frozen=True)
class PayloadError:
    source: str
    message: str
    line: int | None = None

    def location(self) -> str:
        if self.line is None:
            return self.source
        return f"{self.source}:{self.line}"


def decode_collected(
    lines: list[bytes], source: str
) -> tuple[list[TemplateRenderRecord | TemplateContextRecord], list[PayloadError]]:
    """Validate collector JSON lines.

    Invalid lines are reported, not raised: one bad record must not hide the
    render calls recorded next to it.
    """
    records: list[TemplateRenderRecord | TemplateContextRecord] = []
    errors: list[PayloadError] = []
    for index, raw in enumerate(lines, start=1):
        if not raw.strip():
            continue
        try:
            records.append(_COLLECTED_ADAPTER.validate_python(orjson.loads(raw)))
        except orjson.JSONDecodeError as exc:
            errors.append(PayloadError(source, f"Invalid JSON: {exc}", index))
        except ValidationError as exc:
            errors.append(PayloadError(source, f"Invalid record: {exc}", index))
    return records, errors


def encode_collected(record: TemplateRenderRecord | TemplateContextRecord) -> bytes:
    return orjson.dumps(record.model_dump(by_alias=True)) + b"\n"


def decode_mypy_line(line: str) -> MypyMessage | None:
    """Decode one line of mypy output; None for anything that is not a message."""
    text = line.strip()
    if not text.startswith("{"):
        return None
    try:
        payload: Any = orjson.loads(text)
        return MypyMessage.model_validate(payload)
    except (orjson.JSONDecodeError, ValidationError):
        return None


__all__ = [
    "COLLECTED_SCHEMA_VERSION",
    "TEMPLATE_CONTEXT",
    "TEMPLATE_RENDER",
    "CollectedRecord",
    "ContextPayload",
    "MypyMessage",
    "PayloadError",
    "RenderPayload",
    "TemplateContextRecord",
    "TemplateRenderRecord",
    "VariablePayload",
    "decode_collected",
    "decode_mypy_line",
    "encode_collected",
]
