"""
Menu scraping, extraction and source orchestration.
"""
