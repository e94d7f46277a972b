from __future__ import annotations

import html


def styled_text(tag: str, css_class: str, text: str, *, quoted: bool = False) -> str:
    """Wrap model-written text in a styled element, escaping it first."""
    body = html.escape(text or "")
    if quoted:
        body = f"&quot;{body}&quot;"
    return f'<{tag} class="{css_class}">{body}</{tag}>'
