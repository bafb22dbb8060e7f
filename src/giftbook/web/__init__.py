"""
Django JSON API for ingestion, bank linking and ledger reports.
"""
