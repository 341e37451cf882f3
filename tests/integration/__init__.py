"""
Integration tests against the stand-in call-center target.

Tests use the Flask test client, a SQLite test database and a live
server thread, and demonstrate:
- Authentication and pagination of the target endpoints
- Record store operations and the full query catalog
- Multi-tier load runs end to end
"""
