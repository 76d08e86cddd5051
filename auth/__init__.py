"""auth/ -- Authentication core: password hashing, tokens, lockout, user store, orchestration.

Layer rule: auth/ imports only stdlib + third-party libraries (plus core/ in
AuthService.from_settings). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
