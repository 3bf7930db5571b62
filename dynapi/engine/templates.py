"""Placeholder substitution for response payloads."""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Match, Optional

from .context import RequestContext
from .parameters import ParameterView

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z0-9_\-]+)?)\s*\}\}")

SIMPLE_NAMES = ("timestamp", "date", "time", "method", "path", "body")
LOOKUP_NAMESPACES = ("query", "headers", "params", "body")


def to_text(value: Any) -> str:
    """Render a substituted value as text.

    Absent values become the empty string; booleans, numbers and structured
    values are written as compact JSON.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class TemplateRenderer:
    """Replace ``{{...}}`` placeholders in a single left-to-right pass.

    Recognized forms are ``timestamp``, ``date``, ``time``, ``method``,
    ``path``, ``body`` and the ``query.X``, ``headers.X``, ``params.X`` and
    ``body.X`` lookups. A recognized form without a value renders as the
    empty string; any other placeholder is left as written. Substituted text
    is never scanned again.
    """

    def __init__(self, context: RequestContext, params: ParameterView,
                 now: Optional[datetime] = None):
        self.context = context
        self.params = params
        instant = now or datetime.now(timezone.utc)
        self.timestamp = instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def render_string(self, text: str) -> str:
        return PLACEHOLDER.sub(self._substitute, text)

    def render_value(self, value: Any) -> Any:
        """Render strings, recursing through lists and dict values."""
        if isinstance(value, str):
            return self.render_string(value)
        if isinstance(value, list):
            return [self.render_value(item) for item in value]
        if isinstance(value, dict):
            return {key: self.render_value(item) for key, item in value.items()}
        return value

    def _substitute(self, match: Match[str]) -> str:
        name = match.group(1)
        namespace, _, key = name.partition(".")

        if not key:
            if name not in SIMPLE_NAMES:
                return match.group(0)
            return self._simple(name)

        if namespace not in LOOKUP_NAMESPACES:
            return match.group(0)
        return to_text(self._lookup(namespace, key))

    def _simple(self, name: str) -> str:
        if name == "timestamp":
            return self.timestamp
        if name == "date":
            return self.timestamp.split("T")[0]
        if name == "time":
            return self.timestamp.split("T")[1]
        if name == "method":
            return self.context.method
        if name == "path":
            return self.context.raw_path
        body = self.context.body if self.context.body is not None else {}
        return to_text(body)

    def _lookup(self, namespace: str, key: str) -> Any:
        if namespace == "query":
            return self.context.query.get(key)
        if namespace == "headers":
            return self.context.headers.get(key.lower())
        if namespace == "params":
            return self.params.get(key)
        body: Dict[str, Any] = self.context.body_object
        return body.get(key)
