from __future__ import annotations

import re

_UNKNOWN_DEVICE = "Unknown Device"
_UNKNOWN_BROWSER = "Unknown Browser"
_UNKNOWN_OS = "Unknown OS"

# Order matters: Edge and Opera user agents also contain Chrome and Safari tokens.
_BROWSER_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"Edg/[\d.]+")),
    ("Opera", re.compile(r"OPR/[\d.]+")),
    ("Firefox", re.compile(r"Firefox/[\d.]+")),
    ("Chrome", re.compile(r"Chrome/[\d.]+")),
    ("Safari", re.compile(r"Safari/[\d.]+")),
)
# iOS user agents contain "Mac OS X"; Android user agents contain "Linux".
_OS_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iOS", re.compile(r"iPhone|iPad")),
    ("Android", re.compile(r"Android")),
    ("Windows", re.compile(r"Windows")),
    ("macOS", re.compile(r"Mac OS X")),
    ("Linux", re.compile(r"Linux")),
)


def extract_device_name(*, user_agent: str | None) -> str:
    """
    Build best-effort human label like `Chrome on Windows` from a User-Agent string.

    Args:
        user_agent: Raw User-Agent header value.
    Returns:
        str: Device label; `Unknown Device` when header is missing.
    Assumptions:
        Label is informational only and never used for trust decisions.
    Raises:
        None.
    Side Effects:
        None.
    """
    if user_agent is None or not user_agent.strip():
        return _UNKNOWN_DEVICE
    browser_name = _first_match(
        patterns=_BROWSER_PATTERNS,
        value=user_agent,
        default=_UNKNOWN_BROWSER,
    )
    os_name = _first_match(patterns=_OS_PATTERNS, value=user_agent, default=_UNKNOWN_OS)
    return f"{browser_name} on {os_name}"


def _first_match(
    *,
    patterns: tuple[tuple[str, re.Pattern[str]], ...],
    value: str,
    default: str,
) -> str:
    for name, pattern in patterns:
        if pattern.search(value):
            return name
    return default
