"""
Profile Routes - Protected Resource
===================================

The profile page is the resource the login flow protects. Every request
passes through the route guard; unauthenticated requests are redirected
before the handler runs.
"""

import logging

from fastapi import APIRouter, Depends

from webauth.auth.guard import require_authentication
from webauth.models import Credential, UserProfile

logger = logging.getLogger(__name__)

profile_router = APIRouter(tags=["profile"])


@profile_router.get("/profile", response_model=UserProfile)
async def get_profile(credential: Credential = Depends(require_authentication)) -> UserProfile:
    """
    Return the profile snapshot taken at login.

    The profile is not refreshed from the provider until the user logs in
    again.
    """
    return credential.profile
