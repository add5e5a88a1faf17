"""
Client for the avatar platform's REST API.
"""

from vam.upstream.client import UpstreamClient
from vam.upstream.models import AvatarPage, AvatarRecord, LoginOutcome

__all__ = ["AvatarPage", "AvatarRecord", "LoginOutcome", "UpstreamClient"]
