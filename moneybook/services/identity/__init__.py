"""Identity collaborator: who is signed in."""

from moneybook.services.identity.interface import (
    AuthenticationRequiredError,
    IdentityProviderInterface,
    StaticIdentityProvider,
)

__all__ = [
    "AuthenticationRequiredError",
    "IdentityProviderInterface",
    "StaticIdentityProvider",
]
