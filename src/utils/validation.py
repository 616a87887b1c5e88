MAX_TOKEN_LENGTH = 4096


def validate_token(token: str) -> str:
    clean = token.strip()
    if not clean:
        raise ValueError("Registration token must not be blank")
    if len(clean) > MAX_TOKEN_LENGTH or any(ch.isspace() for ch in clean):
        raise ValueError("Registration token is malformed")
    return clean
