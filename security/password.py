import bcrypt

BCRYPT_ROUNDS = 12

def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not isinstance(plain_password, str) or not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash
        return False

def verify_current_password(candidate: str, current_password_hash: str) -> bool:
    """Check a "current password" form field against the caller's known hash.

    An empty candidate passes; required-field checks report it separately.
    """
    if candidate is None or candidate == "":
        return True
    return verify_password(candidate, current_password_hash)
