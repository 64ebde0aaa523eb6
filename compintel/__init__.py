"""
Competitive-intelligence ETL pipeline.

Raw competitor signals are queued, deduplicated per tenant, enriched with
sentiment and entities, scored for priority, persisted and, when urgent,
forwarded to notifiers.
"""

__version__ = "0.1.0"
