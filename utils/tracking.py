import secrets

# No 0/O, 1/I/L: codes get read out over the phone
TRACKING_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"


def generate_tracking_code(prefix: str = "ORD", length: int = 8) -> str:
    body = "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))
    return f"{prefix}-{body}" if prefix else body


def normalize_tracking_code(code: str) -> str:
    return code.strip().upper()
