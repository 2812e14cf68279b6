from abc import ABC, abstractmethod


class IdentityProvider(ABC):
    """Read-only access to the logged-in seller."""

    @abstractmethod
    def get_seller_id(self) -> str | None:
        """Opaque seller identifier, or None when nobody is logged in."""
        ...
