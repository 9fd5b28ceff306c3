from werkzeug.security import check_password_hash, generate_password_hash


def hash_password(raw_password: str) -> str:
    # werkzeug salts every hash and records the method in the result.
    return generate_password_hash(raw_password)


def verify_password(raw_password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, raw_password)
