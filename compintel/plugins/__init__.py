"""
Enrichment adapters: sentiment analyzers and entity extractors.
"""
