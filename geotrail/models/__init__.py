"""
Data Models Module
----------------
Contains Pydantic models for data validation and serialization.
Defines coordinates, geocode results with their provenance, cache entries
and the travel points the resolver geocodes.
"""
