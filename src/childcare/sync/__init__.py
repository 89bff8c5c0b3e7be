"""Sync infrastructure for Procare activity data.

Modules:
    engine — Incremental sync (children refresh, per-child watermark, batch write)
    dedup  — Idempotency keys, in-batch dedup, upsert SQL
"""
