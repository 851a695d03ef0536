"""
Database Models

This package defines the database models for the accounts service using
SQLAlchemy ORM.

Key Models:
- base.py: Base SQLAlchemy model with common type definitions
- users.py: User accounts and the repositories that read and write them

Only the account record lives in the database. Device sessions and rate
counters are kept in Redis (see ``aur.im.accounts.store``) and avatars on disk
(see ``aur.im.accounts.image``).
"""
