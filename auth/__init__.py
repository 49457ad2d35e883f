"""auth/ -- Authentication and session package for Watch Tracker.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or watchlist/.
api/ imports from auth/, not the other way around.
"""
