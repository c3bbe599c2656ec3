"""
Credential Model

The shared access/refresh pair and the handle every remote call reads it from.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenPair:
    """Result of a refresh-token exchange."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Credential:
    """
    The live credential for one identity.

    Frozen: a refresh produces a new Credential with ``generation + 1``
    and the handle swaps the reference in one assignment.
    """

    access_token: str
    refresh_token: str | None
    generation: int = 0

    def rotate(self, pair: TokenPair) -> "Credential":
        return Credential(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            generation=self.generation + 1,
        )


class ClientHandle:
    """
    Process-scoped holder of the live credential.

    Owned by the GatewaySession and passed explicitly to the remote store,
    so every in-flight call reads the same credential.
    """

    def __init__(self, identity: str):
        self.identity = identity
        self._credential: Credential | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def generation(self) -> int:
        return self._credential.generation if self._credential else -1

    @property
    def access_token(self) -> str | None:
        return self._credential.access_token if self._credential else None

    def install(self, credential: Credential) -> None:
        self._credential = credential

    def __repr__(self) -> str:
        return f"ClientHandle(identity='{self.identity}', generation={self.generation})"
