"""mailsearch — Email search gateway over Apache Solr.

Translates structured email search requests into canonical Solr queries,
executes them with a bounded timeout and retry policy, maps the raw
payload into typed results, and caches results by query fingerprint.
"""

__version__ = "0.1.0"
