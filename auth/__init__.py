"""auth/ -- Password hashing, token lifecycle, and the credential store.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from core/; configuration reaches it as plain values
through auth.service.build_auth_service().
"""
