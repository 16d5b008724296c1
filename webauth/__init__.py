"""
webauth - OAuth 2.0 / OpenID Connect login server.

Signs browser users in through an identity provider using the authorization
code flow, keeps the resulting credential in an encrypted cookie and guards
the profile page behind it.
"""

__version__ = "1.0.0"
