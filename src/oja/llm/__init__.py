from __future__ import annotations

from .response_parser import parse_assistant_response, strip_code_fences
from .http_backend import HttpActionExecutor, HttpInferenceAdapter, ScreenContext

__all__ = [
    "parse_assistant_response",
    "strip_code_fences",
    "HttpActionExecutor",
    "HttpInferenceAdapter",
    "ScreenContext",
]
