from typing import Protocol


class SecretHasher(Protocol):
    def hash(self, secret: str) -> str:
        ...

    def verify(self, secret: str, hashed: str) -> bool:
        ...
