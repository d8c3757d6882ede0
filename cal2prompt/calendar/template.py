"""
Tool: Prompt Template
Purpose: Render bucketed days into the final prompt text with Jinja2

The template context is ``{"days": [...]}`` where each day is a
``Day.to_dict()``.

Dependencies:
    - jinja2 (pip install jinja2)
"""

from __future__ import annotations

from jinja2 import Environment

from cal2prompt.calendar.aggregator import Day


STANDARD = """\
Here is your schedule summary. Please find the details below:
{% for day in days %}
## Date: {{ day.date }}

{% if day.all_day_events|length > 0 %}
### All-Day Events:
{% for ev in day.all_day_events %}
- {{ ev.summary }}
  - (All Day)
  - Location: {{ ev.location or "N/A" }}
  - Description: {{ ev.description or "No description." }}
  - Attendees:
    {% if ev.attendees|length > 0 %}
      {% for a in ev.attendees %}
      - {{ a }}
      {% endfor %}
    {% else %}
    - (No attendees)
    {% endif %}
{% endfor %}
{% endif %}

### Events:
{% if day.timed_events|length == 0 %}
(No timed events)
{% else %}
{% for ev in day.timed_events %}
- {{ ev.summary }}
  - Start: {{ ev.start }}
  - End:   {{ ev.end }}
  - Location: {{ ev.location or "N/A" }}
  - Description: {{ ev.description or "No description." }}
  - Attendees:
    {% if ev.attendees|length > 0 %}
      {% for a in ev.attendees %}
      - {{ a }}
      {% endfor %}
    {% else %}
    - (No attendees)
    {% endif %}
{% endfor %}
{% endif %}
{% endfor %}
"""

BUILTIN_TEMPLATES = {
    "standard": STANDARD,
}


def resolve_template(name_or_source: str) -> str:
    """Map a built-in template name to its body; anything else is a template body."""
    return BUILTIN_TEMPLATES.get(name_or_source.strip().lower(), name_or_source)


def _environment() -> Environment:
    return Environment(trim_blocks=True, lstrip_blocks=True, autoescape=False)


def render(template: str, days: list[Day]) -> str:
    """Render ``days`` through ``template``. Syntax errors propagate from Jinja2."""
    compiled = _environment().from_string(template)
    return compiled.render(days=[day.to_dict() for day in days])
