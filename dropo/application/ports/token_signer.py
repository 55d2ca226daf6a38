from typing import Any, Dict, Protocol


class TokenSigner(Protocol):
    def sign_access_token(self, user_id: str, phone_number: str, expires_in: int) -> str:
        ...

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        ...
