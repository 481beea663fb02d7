"""auth/ -- Authentication and authorization package for Libris.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or books/.
api/ and web/ import from auth/, not the other way around.
"""
