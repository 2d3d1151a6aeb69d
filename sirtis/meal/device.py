"""User-agent sniffing for MEAL submission device info."""

from __future__ import annotations

import re
from typing import Any, Optional

_MOBILE_RE = re.compile(r"Mobile|Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.I)
_TABLET_RE = re.compile(r"iPad|Android(?=.*Tablet)|Kindle|Silk", re.I)

# First match wins.
_PLATFORMS = [
    (re.compile(r"Android", re.I), "Android"),
    (re.compile(r"iPhone|iPad|iPod", re.I), "iOS"),
    (re.compile(r"Windows", re.I), "Windows"),
    (re.compile(r"Macintosh|Mac OS X", re.I), "macOS"),
    (re.compile(r"Linux", re.I), "Linux"),
]
_BROWSERS = [
    (re.compile(r"Edg(e|A|iOS)?/", re.I), "Edge"),
    (re.compile(r"OPR/|Opera", re.I), "Opera"),
    (re.compile(r"Firefox|FxiOS", re.I), "Firefox"),
    (re.compile(r"Chrome|CriOS", re.I), "Chrome"),
    (re.compile(r"Safari", re.I), "Safari"),
]
_OS_VERSIONS = [
    (re.compile(r"Windows NT 10\.0", re.I), "Windows 10"),
    (re.compile(r"Windows NT 6\.3", re.I), "Windows 8.1"),
    (re.compile(r"Windows NT 6\.1", re.I), "Windows 7"),
    (re.compile(r"Android (\d+)", re.I), "Android {0}"),
    (re.compile(r"(?:iPhone|CPU) OS (\d+)", re.I), "iOS {0}"),
    (re.compile(r"Mac OS X (\d+)[._](\d+)", re.I), "macOS {0}.{1}"),
    (re.compile(r"Linux", re.I), "Linux"),
]


def _first(patterns: list, user_agent: str) -> str:
    for pattern, label in patterns:
        match = pattern.search(user_agent)
        if match:
            return label.format(*match.groups())
    return "Unknown"


def parse_device_info(
    user_agent: Optional[str],
    accept_language: Optional[str] = None,
    client_hints: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    ua = user_agent or ""
    hints = client_hints or {}
    language = (accept_language or "").split(",")[0].split(";")[0].strip() or "en"
    return {
        "user_agent": user_agent or "Unknown",
        "platform": _first(_PLATFORMS, ua),
        "browser": _first(_BROWSERS, ua),
        "os": _first(_OS_VERSIONS, ua),
        "language": language,
        "screen_resolution": hints.get("screen_resolution") or "Unknown",
        "timezone": hints.get("timezone") or "Unknown",
        "connection_type": hints.get("connection_type") or "Unknown",
        "is_mobile": bool(_MOBILE_RE.search(ua)),
        "is_tablet": bool(_TABLET_RE.search(ua)),
    }
