"""HTTP API: background search runs (orchestrator.py) served by Flask (server.py)."""
