"""Core (UI-agnostic) merchant metrics logic.

This package contains:
- field coercion and month normalization
- record ingestion (raw records -> Row) and batch merging
- filter normalization and the filter/search pipeline
- aggregations and period comparison (pandas)
- page compute functions (JSON-serializable payloads)
"""
