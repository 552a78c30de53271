"""
Shop storage utilities for the SMS Blossom Shopify app.

This package is intentionally small and focused. It currently provides:

- `blossom.config` for environment-based configuration
- `blossom.check_env` for the boot-time environment guard
- `blossom.logging` for structlog-based structured logging
- `blossom.db` for the process-wide database engine and sessions
- `blossom.crypto` for sealing secrets stored at rest
- `blossom.repository` for the shop repository

The web app and its workers should treat `blossom` as infrastructure code
and avoid introducing route- or job-specific coupling here.
"""
