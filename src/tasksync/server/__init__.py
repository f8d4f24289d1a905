"""Server module - Remote authority, database and HTTP API."""
