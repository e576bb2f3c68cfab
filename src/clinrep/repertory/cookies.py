"""
Set-Cookie parsing for the oorep.com session handshake.

Only the ``name=value`` prefix of each cookie is kept; attributes such as
Path, Expires or HttpOnly are dropped.
"""
from __future__ import annotations

import re
from typing import Mapping, Union

import httpx

# A comma separates two cookies only when the next thing is ``token=``.
# "Expires=Wed, 01-Jan-2025 ..." does not match because "01-Jan-2025" is
# followed by a space. A value containing ", x=y" will still be mis-split.
_COOKIE_SPLIT_RE = re.compile(r",(?=\s*[!#$%&'*+\-.^_`|~0-9A-Za-z]+=)")
_NAME_VALUE_RE = re.compile(r"^([^=]+)=([^;]+)")

HeadersLike = Union[httpx.Headers, Mapping[str, str], str, None]


def split_set_cookie(raw: str) -> list[str]:
    """Split a comma-joined Set-Cookie header into individual cookies."""
    if not raw:
        return []
    return [part for part in _COOKIE_SPLIT_RE.split(raw) if part.strip()]


def set_cookie_strings(headers: HeadersLike) -> list[str]:
    """Return one string per cookie, preferring the per-header list."""
    if headers is None:
        return []
    if isinstance(headers, str):
        return split_set_cookie(headers)
    if isinstance(headers, httpx.Headers):
        values = headers.get_list("set-cookie")
        if values:
            return values
        return []
    for key, value in headers.items():
        if key.lower() == "set-cookie":
            return split_set_cookie(value)
    return []


def parse_cookies(headers: HeadersLike) -> dict[str, str]:
    """Reduce Set-Cookie entries to a ``{name: value}`` map (last one wins)."""
    cookies: dict[str, str] = {}
    for cookie in set_cookie_strings(headers):
        match = _NAME_VALUE_RE.match(cookie.strip())
        if match:
            cookies[match.group(1).strip()] = match.group(2).strip()
    return cookies


def format_cookies(cookies: Mapping[str, str]) -> str:
    """Serialize a cookie map into a ``Cookie`` request header value."""
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def csrf_cookie_name(cookies: Mapping[str, str]) -> str | None:
    """Name of the first CSRF-family cookie (``csrfCookie``, ``XSRF-TOKEN`` ...)."""
    for name in cookies:
        lowered = name.lower()
        if "csrf" in lowered or "xsrf" in lowered:
            return name
    return None
