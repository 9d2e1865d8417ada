"""Redaction of sensitive values before they reach execution history."""

import re
from typing import Any, Optional

from agentgate.config import RedactionSettings


class Redactor:
    """Replace sensitive mapping values and pattern matches with a placeholder.

    A mapping key is sensitive when it equals a configured field name or
    carries it as an underscore-separated prefix or suffix (case-insensitive),
    so ``openai_api_key`` matches ``api_key`` while ``max_tokens`` does not
    match ``token``.
    """

    def __init__(self, settings: Optional[RedactionSettings] = None):
        self.settings = settings or RedactionSettings()
        self._fields = [f.lower() for f in self.settings.fields]
        self._patterns = [re.compile(p) for p in self.settings.patterns]

    def is_sensitive(self, key: Any) -> bool:
        name = str(key).lower()
        return any(
            name == field or name.endswith("_" + field) or name.startswith(field + "_")
            for field in self._fields
        )

    def redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: self.settings.placeholder if self.is_sensitive(k) else self.redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.redact(item) for item in value]
        if isinstance(value, str):
            return self.redact_string(value)
        return value

    def redact_string(self, text: str) -> str:
        for pattern in self._patterns:
            text = pattern.sub(self.settings.placeholder, text)
        max_length = self.settings.max_value_length
        if max_length and len(text) > max_length:
            text = text[:max_length] + "..."
        return text
