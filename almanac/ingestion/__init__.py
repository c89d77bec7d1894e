"""Ingestion: almanac text -> seed list + mapping chain (parser.py)."""
