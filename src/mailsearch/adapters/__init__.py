"""Search adapter layer — Upstream connectors for the email index.

Built-in adapters:
  - solr: Apache Solr v8+ (JSON Request API, edismax full-text search)

Implement ``SearchAdapter`` to connect another backend.
"""
