"""Sanitizing and rendering of command templates.

Templates use ``str.format`` named fields, e.g.
``claude -p "Review PR #{pr_number} in {repo_full_name}"``.
"""

from __future__ import annotations

import re
import string
from dataclasses import asdict, dataclass, fields

from hookrunner.events import Event

# Blocklist of shell-significant characters. Matches are deleted, not escaped,
# so sanitizing is lossy: "$(whoami)" becomes "whoami" and "don't" becomes "dont".
# Switching to quoting would change what existing templates produce.
SHELL_META_CHARS = re.compile(r"""[;&|$`\\!(){}\[\]<>*?~#'"\n\r]""")


class TemplateError(ValueError):
    """A command or workdir template cannot be rendered."""


@dataclass(frozen=True, slots=True)
class TemplateVars:
    repo_full_name: str
    repo_clone_url: str
    pr_number: str
    comment_body: str
    comment_author: str
    event_type: str

    @classmethod
    def from_event(cls, event: Event) -> TemplateVars:
        return cls(
            repo_full_name=event.repo_full_name,
            repo_clone_url=event.repo_clone_url,
            pr_number=str(event.subject_number),
            comment_body=event.match_text,
            comment_author=event.author,
            event_type=event.kind.value,
        )


TEMPLATE_FIELDS: frozenset[str] = frozenset(f.name for f in fields(TemplateVars))


def sanitize(value: str) -> str:
    return SHELL_META_CHARS.sub("", value)


def sanitize_vars(template_vars: TemplateVars) -> TemplateVars:
    return TemplateVars(**{k: sanitize(v) for k, v in asdict(template_vars).items()})


def render_template(template: str, template_vars: TemplateVars) -> str:
    """Substitute ``template_vars`` into ``template``.

    Only bare named fields from :data:`TEMPLATE_FIELDS` are allowed; positional
    fields and attribute or index access are rejected.
    """

    formatter = string.Formatter()
    try:
        parsed = list(formatter.parse(template))
    except ValueError as e:
        raise TemplateError(f"malformed template {template!r}: {e}") from e

    for _, field_name, _, _ in parsed:
        if field_name is None:
            continue
        if field_name not in TEMPLATE_FIELDS:
            raise TemplateError(f"unsupported template field {{{field_name}}} in {template!r}")

    try:
        return formatter.vformat(template, (), asdict(template_vars))
    except (KeyError, IndexError, ValueError) as e:
        raise TemplateError(f"cannot render template {template!r}: {e}") from e
