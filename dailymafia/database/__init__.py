"""
Database Package

SQLAlchemy models, engine/session management and the game state store.
"""
