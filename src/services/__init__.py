"""Analytics services used by handlers.

Services are imported lazily by handlers so that SQLAlchemy engines and
numerical libraries are only loaded on the routes that need them.
"""

# Do NOT import services here - use lazy loading in handlers instead
