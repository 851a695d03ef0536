"""
aur.im accounts - account backend for the aur.im messenger

This package issues credentials, maintains per-device sessions, serves and
ingests profile avatars, and throttles anonymous verification-code requests.

Key Components:
- app: aiohttp application layer with request handlers, configuration and CLI
- security: password hashing, signed session tokens and the register/login flows
- store: Redis-backed device sessions and rate/verification counters
- image: magic-byte format detection, WebP transcoding and avatar storage
- model: database models for user accounts

Authentication Flow:
1. A caller verifies a password against the stored Argon2id hash
2. A signed HS256 session token is issued for the account
3. The token is recorded against the caller's device id in Redis
4. Privileged requests validate the token and compare it with the stored token
   for the presenting device, rejecting superseded tokens
"""
