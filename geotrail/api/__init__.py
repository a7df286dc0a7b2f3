"""
API Module
---------
Provides the geocoding proxy endpoints using FastAPI.
Features include:
- Geocoding a city through the full provider chain
- AMap-only geocoding with optional high priority
- Batch geocoding of a trip's travel points
- Inspecting and cleaning the geocode cache
"""
