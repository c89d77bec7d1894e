"""Configuration read from environment variables (see env.py)."""
