"""auth/ -- Route-access control for RouteGuard.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/ for
configuration in auth/dependencies.py. It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
