from typing import Mapping


def describe_cookies(cookies: Mapping[str, str]) -> str:
    """Name the cookies being forwarded without leaking their values into logs."""
    if not cookies:
        return "no cookies"
    names = ", ".join(cookies)
    return f"{len(cookies)} cookie(s) [{names}]"
