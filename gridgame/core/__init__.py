"""Core gameplay primitives (grid geometry, movement, and engine events).

Kept free of FastAPI and Redis concerns so it can be reused by the session
lifecycle, the API layer, and tests.
"""
