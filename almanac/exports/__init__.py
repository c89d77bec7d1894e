"""Exports: search results as CSV and Markdown.

- writers.py: per-worker CSV
- reports.py: summary.md
"""
