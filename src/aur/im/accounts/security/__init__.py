"""
Credentials and Sessions

This package holds the cryptographic side of the account service and the flows
composed from it.

Key Components:
- password.py: Argon2id password hashing and verification
- jwt.py: HS256 session token issue and validation
- accounts.py: register, login and token authentication flows
"""
