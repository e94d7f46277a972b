import time
from typing import Any, Callable, Optional, Tuple

import requests

from musescape.config import OPENROUTER_BASE_URL


def connectivity_probe(url: str = OPENROUTER_BASE_URL, timeout_sec: int = 5) -> tuple[bool, str]:
    try:
        resp = requests.get(url, timeout=timeout_sec)
        return (resp.ok, f"HTTP {resp.status_code}")
    except Exception as e:  # noqa: BLE001
        return (False, str(e))


def with_backoff(
    func: Callable[[], Any],
    *,
    retries: int = 0,
    base_delay: float = 0.8,
    on_log: Optional[Callable[[str], None]] = None,
):
    """Call ``func``; on error retry up to ``retries`` times with exponential delay.

    The default of zero retries means a single attempt.
    """
    last_exc: Optional[Exception] = None
    for attempt in range(max(0, retries) + 1):
        try:
            return func()
        except Exception as e:  # noqa: BLE001
            last_exc = e
            if attempt >= retries:
                break
            delay = base_delay * (2 ** attempt)
            if on_log:
                on_log(f"Retrying after error: {e} (sleep {delay:.1f}s)…")
            time.sleep(delay)
    if last_exc:
        raise last_exc
    raise RuntimeError("with_backoff: exhausted retries")


def openrouter_models_probe(api_key: str, base_url: str = OPENROUTER_BASE_URL, timeout_sec: int = 8) -> Tuple[bool, str]:
    try:
        resp = requests.get(
            f"{base_url.rstrip('/')}/models",
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout_sec,
        )
        if resp.ok:
            return True, f"HTTP {resp.status_code}, {len(resp.json().get('data', []))} models"
        return False, f"HTTP {resp.status_code}: {resp.text[:200]}"
    except Exception as e:  # noqa: BLE001
        return False, str(e)


def response_text(resp: Any) -> str:
    """Pull the first choice's message content from an SDK object or HTTP JSON dict."""
    text = ""
    if resp is None:
        return text
    if hasattr(resp, "choices"):
        text = (resp.choices[0].message.content or "") if resp.choices else ""
    elif isinstance(resp, dict):
        choices = resp.get("choices", [])
        if choices:
            msg = choices[0].get("message", {})
            text = msg.get("content", "") or ""
    return text if isinstance(text, str) else ""
