"""
Authentication Package

This package implements the OAuth 2.0 authorization code flow with OpenID
Connect discovery against a single identity provider.

Modules:
- discovery: Provider endpoint discovery at startup (ProviderConfig)
- tokens: Cryptographically random state values
- state: Session value and session-bound state stores
- utils: Token response validation and ID token verification (JWKS)
- flow: The orchestrator (initiate, complete, logout URL)
- credentials: Encrypted credential cookies
- guard: Route guard dependency for protected endpoints
- routes: /login, /callback and /logout
- errors: Flow error taxonomy

The authentication flow:
1. Browser requests /login; a fresh state is stored for its session
2. User authenticates at the provider
3. Provider redirects to /callback with code and state
4. State is verified and consumed, the code exchanged, the profile fetched
5. The encrypted credential cookie lets the browser through the route guard
"""

from .guard import LoginRequired, require_authentication
from .routes import auth_router

__all__ = [
    "auth_router",
    "require_authentication",
    "LoginRequired",
]
