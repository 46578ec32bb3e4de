"""
Credential / base-URL resolution.

The ERP base URL and token come from Settings. A caller may override the
token per call with `X-Upstream-Token`; overriding the base URL with
`X-Upstream-Base-Url` is only honoured when the deployment allows it.
"""

from __future__ import annotations

import time
from collections.abc import Mapping

from erp_adapter.config import Settings
from erp_adapter.tools.types import RequestContext, RequestId, ToolConfigurationError, new_request_id

TOKEN_OVERRIDE_HEADER = "x-upstream-token"
BASE_URL_OVERRIDE_HEADER = "x-upstream-base-url"


def as_authorization(token: str | None) -> str | None:
    if not token:
        return None
    token = token.strip()
    if not token:
        return None
    # Already carries a scheme ("Bearer x", "Basic y").
    if " " in token:
        return token
    return f"Bearer {token}"


class CredentialResolver:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def resolve(
        self,
        headers: Mapping[str, str] | None = None,
        *,
        request_id: RequestId | None = None,
    ) -> RequestContext:
        lowered = {k.lower(): v for k, v in (headers or {}).items()}

        base_url = self._settings.erp_base
        override_url = lowered.get(BASE_URL_OVERRIDE_HEADER)
        if override_url and self._settings.allow_base_url_override:
            base_url = override_url.rstrip("/")

        if not base_url:
            raise ToolConfigurationError("ERP base URL is not configured (set ERP_BASE).")

        authorization = as_authorization(lowered.get(TOKEN_OVERRIDE_HEADER)) or as_authorization(
            self._settings.erp_token
        )

        deadline = None
        if self._settings.call_deadline_seconds is not None:
            deadline = time.monotonic() + self._settings.call_deadline_seconds

        return RequestContext(
            base_url=base_url,
            authorization=authorization,
            request_id=request_id or new_request_id(),
            deadline=deadline,
        )
