from passlib.context import CryptContext

from ...application.ports.secret_hasher import SecretHasher


class BcryptSecretHasher(SecretHasher):
    """Salted bcrypt hashes for OTP codes and refresh-token secrets."""

    def __init__(self, rounds: int = 10) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, secret: str) -> str:
        return self._context.hash(secret)

    def verify(self, secret: str, hashed: str) -> bool:
        try:
            return self._context.verify(secret, hashed)
        except ValueError:
            # Not a bcrypt hash, e.g. a provider-managed placeholder
            return False
