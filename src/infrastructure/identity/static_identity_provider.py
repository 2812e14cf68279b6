from src.application.interfaces.identity_provider import IdentityProvider


class StaticIdentityProvider(IdentityProvider):
    """Identity resolved up front, e.g. from a request header."""

    def __init__(self, seller_id: str | None) -> None:
        self._seller_id = seller_id.strip() if seller_id else None

    def get_seller_id(self) -> str | None:
        return self._seller_id or None
