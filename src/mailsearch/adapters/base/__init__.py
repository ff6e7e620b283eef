"""Base adapter interface — Abstract classes for search engine connectors."""

from mailsearch.adapters.base.adapter import AdapterHealth, RawResults, SearchAdapter

__all__ = ["AdapterHealth", "RawResults", "SearchAdapter"]
