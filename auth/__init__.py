"""auth/ -- Authentication and authorization package for Postboard.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or blog/.
api/ and blog/ import from auth/, not the other way around.
"""
