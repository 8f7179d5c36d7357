"""
Token authentication for sync devices.

Devices send ``Authorization: Token <key>``; keeping the class in its own
module gives settings a stable import path without pulling in any views.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        # Deactivated facilities cannot sync even with a valid token.
        facility = getattr(user, 'facility', None)
        if facility is not None and not facility.active:
            raise exceptions.AuthenticationFailed('Facility is inactive.')
        return user, token
