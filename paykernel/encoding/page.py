"""Auto-submitting HTML form for POST page requests."""

import html
from typing import Mapping


def build_form(action_url: str, form_params: Mapping[str, str]) -> str:
    """
    Render a hidden form that posts ``form_params`` to ``action_url`` on load.

    Values are HTML-escaped; field order follows ``form_params``.
    """
    lines = [
        f'<form name="punchout_form" method="post" action="{html.escape(action_url)}">'
    ]
    for key, value in form_params.items():
        lines.append(
            f'<input type="hidden" name="{html.escape(key)}" value="{html.escape(value)}">'
        )
    lines.append('<input type="submit" value="Submit" style="display:none" >')
    lines.append("</form>")
    lines.append("<script>document.forms[0].submit();</script>")
    return "\n".join(lines)
