"""
Geocoding Module
--------------
Handles forward geocoding of city names to coordinates.
Chains AMap, OpenStreetMap's Nominatim and MapQuest behind per-provider rate-limited
queues, with in-memory and persistent caching and a built-in city table as fallback.
"""
