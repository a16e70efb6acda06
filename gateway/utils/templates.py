"""Placeholder templates for provider token and secret-rotation requests."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Set

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

STANDARD_PLACEHOLDERS = frozenset(
    {
        "refresh_token",
        "client_id",
        "client_secret",
        "display_name",
        "expires_at",
        "application_id",
    }
)


class TemplateError(ValueError):
    """Raised when a template references a placeholder outside the known set."""


@dataclass(frozen=True)
class TemplateContext:
    """Values available to a template at request time."""

    refresh_token: str = ""
    client_id: str = ""
    client_secret: str = ""
    display_name: str = ""
    expires_at: str = ""
    application_id: str = ""
    extra: Mapping[str, str] = field(default_factory=dict)

    def as_mapping(self) -> Dict[str, str]:
        values = dict(self.extra)
        values.update(
            refresh_token=self.refresh_token,
            client_id=self.client_id,
            client_secret=self.client_secret,
            display_name=self.display_name,
            expires_at=self.expires_at,
            application_id=self.application_id,
        )
        return values


def find_placeholders(template: Any) -> Set[str]:
    """Collect every placeholder name referenced anywhere in ``template``."""
    found: Set[str] = set()
    if isinstance(template, str):
        found.update(_PLACEHOLDER.findall(template))
    elif isinstance(template, Mapping):
        for key, value in template.items():
            found |= find_placeholders(key)
            found |= find_placeholders(value)
    elif isinstance(template, (list, tuple)):
        for value in template:
            found |= find_placeholders(value)
    return found


def validate_placeholders(template: Any, extra_names: Iterable[str] = ()) -> None:
    """Reject templates that reference names no context can provide."""
    allowed = STANDARD_PLACEHOLDERS | set(extra_names)
    unknown = find_placeholders(template) - allowed
    if unknown:
        names = ", ".join(sorted(unknown))
        raise TemplateError(f"Unknown template placeholder(s): {names}")


def render_template(template: Any, context: TemplateContext) -> Any:
    """Return a copy of ``template`` with every placeholder substituted."""
    values = context.as_mapping()

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            raise TemplateError(f"Unknown template placeholder: {name}")
        return values[name]

    if isinstance(template, str):
        return _PLACEHOLDER.sub(_substitute, template)
    if isinstance(template, Mapping):
        return {
            render_template(key, context): render_template(value, context)
            for key, value in template.items()
        }
    if isinstance(template, (list, tuple)):
        return [render_template(value, context) for value in template]
    return template


__all__ = [
    "STANDARD_PLACEHOLDERS",
    "TemplateContext",
    "TemplateError",
    "find_placeholders",
    "render_template",
    "validate_placeholders",
]
