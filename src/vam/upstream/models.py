"""
Shapes exchanged between the upstream client and the HTTP layer.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

TwoFactorMethod = Literal["totp", "emailOtp"]
TWO_FACTOR_METHODS: tuple[str, ...] = ("totp", "emailOtp")


@dataclass
class LoginOutcome:
    """Result of a successful login or 2FA verification call."""

    state: Literal["2fa_required", "logged_in"]
    methods: list[str] = field(default_factory=list)
    user: Optional[dict[str, Any]] = None

    @property
    def display_name(self) -> str:
        if isinstance(self.user, dict):
            return self.user.get("displayName") or ""
        return ""

    def to_dict(self) -> dict[str, Any]:
        if self.state == "2fa_required":
            return {"ok": True, "state": self.state, "methods": self.methods}
        return {"ok": True, "state": self.state, "displayName": self.display_name}


@dataclass
class AvatarPage:
    """One page of the raw upstream avatar listing."""

    avatars: list[dict[str, Any]]
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        # The upstream has no "more pages" signal; a full page is the only hint.
        return len(self.avatars) == self.limit


@dataclass
class AvatarRecord:
    """An avatar as presented to the UI."""

    id: str
    name: str
    thumbnail: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    platforms: list[str] = field(default_factory=list)
    performance: Any = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "AvatarRecord":
        """Build a record from an upstream avatar object."""
        platforms: list[str] = []
        performance: dict[str, str] = {}

        for package in data.get("unityPackages") or []:
            platform = package.get("platform")
            if not platform:
                continue
            if platform not in platforms:
                platforms.append(platform)
            rating = package.get("performanceRating")
            if rating:
                performance[platform] = rating

        return cls(
            id=data.get("id", ""),
            name=str(data.get("name") or ""),
            thumbnail=data.get("thumbnailImageUrl"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            platforms=platforms,
            performance=performance or data.get("performance"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "thumbnail": self.thumbnail,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "platforms": self.platforms,
            "performance": self.performance,
        }
