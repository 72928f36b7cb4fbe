"""
Scope registry - translates canonical scope names to Google scope strings.

Tenants request short names ("gmail.send"); Google speaks full URLs. The
mapping is static, so the registry is a plain module-level instance.
"""

from typing import Dict, Iterable, List

from agentauth.core.exceptions import InvalidScopeError
from agentauth.environments.google.auth.schemas import GOOGLE_SCOPE_MAP, SCOPE_DESCRIPTIONS


class ScopeRegistry:
    """
    Bidirectional canonical <-> provider scope mapping.

    Example:
        scope_registry.resolve(["gmail.send", "drive.file"])
        # ["https://www.googleapis.com/auth/gmail.send",
        #  "https://www.googleapis.com/auth/drive.file"]

        scope_registry.parse_granted("https://mail.google.com/ openid")
        # ["gmail.full", "openid"]
    """

    def __init__(self, scope_map: Dict[str, str], descriptions: Dict[str, str]):
        self._forward = dict(scope_map)
        self._reverse = {provider: name for name, provider in scope_map.items()}
        self._descriptions = dict(descriptions)

    def resolve(self, names: Iterable[str]) -> List[str]:
        """
        Map canonical names to provider scopes, preserving order.

        Raises:
            InvalidScopeError: Listing every unknown name, in request order
        """
        names = list(names)
        unknown = [name for name in names if name not in self._forward]
        if unknown:
            raise InvalidScopeError(unknown)
        return [self._forward[name] for name in names]

    def describe(self, provider_scope: str) -> str:
        """Canonical name for a provider scope, or the scope itself if unmapped."""
        return self._reverse.get(provider_scope, provider_scope)

    def parse_granted(self, scope_string: str | None) -> List[str]:
        """Convert the space-separated scope string Google returns to canonical names."""
        if not scope_string:
            return []
        return [self.describe(scope) for scope in scope_string.split() if scope]

    def catalogue(self) -> List[dict]:
        return [
            {
                "name": name,
                "scope": provider_scope,
                "description": self._descriptions.get(name, ""),
            }
            for name, provider_scope in self._forward.items()
        ]


# ---------------------------------------------------------------------------
# SINGLETON INSTANCE
# ---------------------------------------------------------------------------
# Usage: from agentauth.services.scopes import scope_registry
scope_registry = ScopeRegistry(GOOGLE_SCOPE_MAP, SCOPE_DESCRIPTIONS)
