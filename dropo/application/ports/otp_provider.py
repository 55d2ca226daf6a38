from typing import Optional, Protocol


class OTPProvider(Protocol):
    def send(self, phone: str) -> str:
        """Start a verification and return the provider's verification id."""
        ...

    def verify(self, phone: str, code: str) -> Optional[str]:
        """Return the approved verification id, or None when not approved."""
        ...
