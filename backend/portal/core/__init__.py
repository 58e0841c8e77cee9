# portal/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Application initialization and default admin creation
- db: Persistence adapter over the shared SQLite connection
- schema: Table definitions and additive migrations
- security: Password hashing and session token issuance/verification
- errors: Error taxonomy mapped to HTTP responses
- middleware: Security headers, rate limiting and body size limits
"""
