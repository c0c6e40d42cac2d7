"""
Result rendering for the format and summary subcommands.

Stored results are opaque to the orchestrator, so rendering is generic:
"format" dumps the whole payload as YAML, "summary" lists only its
top-level scalar fields. Each call renders one property group.
"""

from typing import Any, Dict

import yaml
from jinja2 import BaseLoader, Environment

from core.jobs import JobCtx
from models.args import Mode

RULE = "=" * 60

FORMAT_TEMPLATE = """\
{{ rule }}
[{{ spec }}] {{ about }}
{{ rule }}
State:    {{ status.state }}
Started:  {{ status.started_at or "?" }}
Ended:    {{ status.ended_at or "?" }}
{% if props %}
Properties: {{ props | join(" ") }}
{% endif %}

Result:
{{ result | indent(2, true) }}
"""

SUMMARY_TEMPLATE = """\
[{{ spec }}] {{ status.state }}{% if status.ended_at %} ({{ status.ended_at }}){% endif %}

{% for key, val in scalars %}
  {{ "%-24s" | format(key) }} {{ val }}
{% else %}
  (no scalar fields)
{% endfor %}
"""

_env = Environment(loader=BaseLoader(), trim_blocks=True, keep_trailing_newline=True)
_templates = {
    Mode.FORMAT: _env.from_string(FORMAT_TEMPLATE),
    Mode.SUMMARY: _env.from_string(SUMMARY_TEMPLATE),
}


def _dump(result: Any) -> str:
    if result is None:
        return "(none)"
    if not isinstance(result, (dict, list)):
        return str(result)
    return yaml.safe_dump(result, default_flow_style=False, sort_keys=False).rstrip("\n")


def _scalars(result: Any):
    if not isinstance(result, dict):
        return [("result", result)] if result is not None else []
    return [(k, v) for k, v in result.items() if not isinstance(v, (dict, list))]


def render_jctx(jctx: JobCtx, mode: Mode, props: Dict[str, str]) -> str:
    """
    Render one stored job for one property group.

    Args:
        jctx: Job whose result to render
        mode: Mode.FORMAT or Mode.SUMMARY
        props: Formatting properties for this rendering

    Returns:
        Rendered text
    """
    template = _templates[mode]
    return template.render(
        rule=RULE,
        spec=str(jctx.spec),
        about=jctx.desc.about,
        status=jctx.status,
        props=[f"{k}={v}" for k, v in props.items()],
        result=_dump(jctx.result),
        scalars=_scalars(jctx.result),
    )
