"""
Trips Module
----------
Imports and exports trip files: JSON arrays of travel points (city, date, transport).
"""
