"""
Account Application Layer

This package implements the HTTP surface of the account service on aiohttp.

Key Components:
- cli.py: Entry point, logging setup
- server.py: Application assembly, middleware and route registration
- config.py: Pydantic settings and the typed AppKeys for shared collaborators
- handlers/: Request handlers for auth, avatar, captcha and internal endpoints

Middleware layers:
- Statsd middleware for request metrics
- Sentry middleware for error reporting

Endpoints:
- Login and registration (/auth/*)
- Avatar download and upload (/avatar/*)
- Verification codes (/captcha/*)
- Liveness and readiness probes (/internal/*)
"""
