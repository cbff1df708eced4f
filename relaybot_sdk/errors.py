"""
SDK 异常定义。

上游（LLM / 语音）错误按是否可重试区分；鉴权失败永不重试。
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for all relaybot_sdk errors."""


class UpstreamError(RelayError):
    """A model / speech backend call failed.

    Attributes:
        status: HTTP-like status code reported by the backend, if any.
    """

    def __init__(self, message: str = "", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class AuthorizationError(UpstreamError):
    """The backend rejected our credentials (401/403). Never retried."""

    def __init__(self, message: str = "unauthorized", status: int = 401) -> None:
        super().__init__(message, status)


_AUTH_STATUSES = {401, 403}


def is_authorization_error(exc: BaseException) -> bool:
    """True if *exc* is an authorization failure from any backend client.

    Recognises our own :class:`AuthorizationError` as well as foreign client
    errors exposing ``status`` or ``status_code`` (openai, httpx, ...).
    """
    if isinstance(exc, AuthorizationError):
        return True
    for attr in ("status", "status_code"):
        code = getattr(exc, attr, None)
        if isinstance(code, int) and code in _AUTH_STATUSES:
            return True
    return False
