"""Bearer-secret generation for invitation links and QR tokens."""
import secrets
import string

_ALPHANUMERIC = string.ascii_letters + string.digits

INVITATION_TOKEN_LENGTH = 64


def generate_invitation_token(length: int = INVITATION_TOKEN_LENGTH) -> str:
    """Random alphanumeric token (CSPRNG), 64 characters by default."""
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


def generate_qr_token() -> str:
    """Opaque, unpredictable QR token value. Carries no sequence or timestamp."""
    return f"QR_{secrets.token_urlsafe(32)}"


def mask_token(token: str, visible: int = 6) -> str:
    """Shorten a secret for log lines."""
    if len(token) <= visible:
        return "***"
    return f"{token[:visible]}..."
