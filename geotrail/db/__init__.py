"""
Database Module
-------------
Handles database connections and the ORM model behind the persistent geocode cache.
Uses SQLAlchemy (SQLite by default, any URL via DB_URL) and stores one row per cached city.
"""
