"""Seek (seek.com.au). Search pages use slug URLs: /data-analyst-jobs/in-sydney."""
from __future__ import annotations

from jobmirror.sources.browser_base import BrowserSourceAdapter


class SeekSource(BrowserSourceAdapter):
    name = "seek"

    def is_external_apply(self, button_text: str, href: str) -> bool | None:
        # A plain "Apply" button carrying ?sol= hands off to the employer's site;
        # "Quick apply" stays on Seek.
        return button_text == "Apply" and "?sol=" in href
