"""Stable file and process boundary formats of jinjastan.

Everything written to disk or read back from another process (the collector
plugin's records, mypy's JSON output, baseline files) is modelled here.
"""

from contract.baseline import BASELINE_SCHEMA_VERSION, BaselineEntry, BaselineFile
from contract.payloads import (
    TEMPLATE_CONTEXT,
    TEMPLATE_RENDER,
    ContextPayload,
    MypyMessage,
    PayloadError,
    RenderPayload,
    TemplateContextRecord,
    TemplateRenderRecord,
    VariablePayload,
    decode_collected,
    decode_mypy_line,
    encode_collected,
)

__all__ = [
    "BASELINE_SCHEMA_VERSION",
    "TEMPLATE_CONTEXT",
    "TEMPLATE_RENDER",
    "BaselineEntry",
    "BaselineFile",
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
