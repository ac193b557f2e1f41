"""
Identity Provider Interface

DESIGN DECISION: MoneyBook does not authenticate anyone itself.
Sign-in is a collaborator's job. All we need from it is "who is the
current user, if anyone". Every flow asks this question first and
stops before touching storage when the answer is nobody.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID


class AuthenticationRequiredError(Exception):
    """No signed-in user. The requested action was not attempted."""

    def __init__(self, action: str = "this action"):
        self.action = action
        super().__init__(f"You need to sign in to perform {action}")


class IdentityProviderInterface(ABC):
    """Resolves the signed-in user."""

    @abstractmethod
    def current_user_id(self) -> Optional[UUID]:
        """
        Get the current user's id.

        Returns:
            The user id, or None when nobody is signed in
        """
        pass


class StaticIdentityProvider(IdentityProviderInterface):
    """
    Fixed identity, for tests and scripts.

    sign_out() / sign_in() let a test flip between the two states.
    """

    def __init__(self, user_id: Optional[UUID] = None):
        self._user_id = user_id

    def current_user_id(self) -> Optional[UUID]:
        return self._user_id

    def sign_in(self, user_id: UUID) -> None:
        self._user_id = user_id

    def sign_out(self) -> None:
        self._user_id = None
