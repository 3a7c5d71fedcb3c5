"""auth/ -- Credential and session lifecycle core for SessionGate.

Components, leaf-first:
  tokens.py          TokenCodec: RS256 sign/verify for access and refresh keys
  store.py           UserStore, SessionStore (revocation index)
  verification.py    registration + email verification codes
  password_reset.py  reset codes with cascading session revocation
  credentials.py     login / refresh / logout
  dependencies.py    per-request AuthContext and the require_auth guard

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
