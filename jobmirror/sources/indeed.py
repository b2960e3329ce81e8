"""Indeed Australia (au.indeed.com), paged by a ``start`` offset."""
from __future__ import annotations

from urllib.parse import urlparse

from jobmirror.sources.browser_base import BrowserSourceAdapter


class IndeedSource(BrowserSourceAdapter):
    name = "indeed"

    def is_external_apply(self, button_text: str, href: str) -> bool | None:
        host = urlparse(href).hostname or ""
        if not host:
            return False
        # Any indeed.com host (au., www., smartapply.) is still the platform.
        return host != "indeed.com" and not host.endswith(".indeed.com")
