"""
Infrastructure: async SQLite, HTTP client and job scheduling.
"""
