"""Mapping chain resolver.

Walks a value from an origin category to a target category one category map
at a time. See `almanac/resolver/core.py`; `cli.py` is the command-line driver.
"""
