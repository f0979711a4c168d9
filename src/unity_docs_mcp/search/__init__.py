"""
Search indexing and query package.

This package provides the SQLite FTS5 search stack:
- schema: Table DDL and versioned migrations
- sqlite_storage: Document store with explicit full-text index maintenance
- sanitizer: Query normalization for the FTS5 grammar
- engine: Ranked search, exact lookups and related pages
- sections / pagination: Views over a stored document
- indexer: Bulk indexing of extracted documentation trees
"""
