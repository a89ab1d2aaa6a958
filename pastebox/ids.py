import secrets

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-_"
ID_LENGTH = 12  # 72 bits


def generate_paste_id(length: int = ID_LENGTH) -> str:
    # 64 symbols, so each draw is exactly 6 bits with no modulo bias
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def content_key_for(paste_id: str) -> str:
    return f"pastes/{paste_id}"
