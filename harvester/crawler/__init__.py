"""Crawl core: validation, normalisation, pagination, retries and section loop.

Nothing in this package reads global settings; callers pass configuration in.
"""
