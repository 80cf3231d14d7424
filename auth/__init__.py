"""auth/ -- Authentication and access-control core for the user auth service.

Layer rule: auth/ imports only stdlib + third-party libraries (and core/ for
settings). It does NOT import from api/. api/ imports from auth/, not the
other way around.
"""
