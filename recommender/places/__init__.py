"""
Place search layer.

Responsibilities:
- Query the Foursquare Places API for candidate places.
- Normalise provider payloads into the internal Place schema.
- Cache repeated searches for a short time window.
"""
