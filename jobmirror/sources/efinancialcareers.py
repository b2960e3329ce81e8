"""eFinancialCareers. Only queried for finance and accounting titles."""
from __future__ import annotations

from jobmirror.models import SearchQuery
from jobmirror.sources.browser_base import BrowserSourceAdapter

FINANCE_KEYWORDS = ("accountant", "finance", "accounting")


class EFinancialCareersSource(BrowserSourceAdapter):
    name = "efinancialcareers"

    def supports(self, query: SearchQuery) -> bool:
        title = query.title.lower()
        return any(keyword in title for keyword in FINANCE_KEYWORDS)
