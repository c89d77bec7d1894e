"""Mapper: range rules and category maps.

- engine.py: RangeRule (one half-open source interval -> destination offset),
  CategoryMap (ordered rules between two named categories) and block parsing
"""
