"""Deterministic fix prompt rendering with strict placeholders."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined

if TYPE_CHECKING:
    from mobicert.fixes.contract import FixRequest

FIX_PROMPT_TEMPLATE: Final[str] = """\
You are repairing a generated React Native / Expo project so that it passes {{ tier }} \
certification (attempt {{ attempt_number }}).

Fix every error below with the smallest possible change. Do not add features, do not rename
public components, and keep the existing code style.

## Errors
{% for error in errors -%}
- [{{ error.kind }}{% if error.code %} {{ error.code }}{% endif %}] \
{% if error.location %}{{ error.location }}: {% endif %}{{ error.message }}
{%- if error.suggestion %}
  hint: {{ error.suggestion }}
{%- endif %}
{% endfor %}
## Project context
```json
{{ context_json }}
```
{% for path, excerpt in excerpts %}
## {{ path }}
```
{{ excerpt }}
```
{% endfor %}
Reply with ONLY a JSON object of the form:
{"description": "<one sentence>", "patches": [{"path": "<project-relative path>", \
"content": "<full new file content>"}]}
Use {"path": "...", "delete": true} to delete a file. Paths must stay inside the project.
"""

_ENVIRONMENT: Final = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    newline_sequence="\n",
)
_TEMPLATE: Final = _ENVIRONMENT.from_string(FIX_PROMPT_TEMPLATE)


def render_fix_prompt(request: FixRequest) -> str:
    """Render the repair prompt; same request, same prompt."""

    context = dict(request.project_context)
    raw_excerpts = context.pop("file_excerpts", {})
    # Local paths stay local.
    context.pop("project_root", None)
    excerpts = (
        sorted((str(path), str(text)) for path, text in raw_excerpts.items())
        if isinstance(raw_excerpts, dict)
        else []
    )
    return _TEMPLATE.render(
        tier=request.tier.value,
        attempt_number=request.attempt_number,
        errors=[error for error in request.errors if error.is_error],
        context_json=json.dumps(context, indent=2, sort_keys=True, ensure_ascii=False),
        excerpts=excerpts,
    )


__all__ = ["FIX_PROMPT_TEMPLATE", "render_fix_prompt"]
