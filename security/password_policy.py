import re
from dataclasses import dataclass
from typing import List, Mapping, Optional

from errors import PasswordValidationError

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"\d")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class PasswordPolicy:
    min_len: int = 12
    max_len: int = 128
    require_upper: bool = True
    require_lower: bool = True
    require_digit: bool = True
    require_symbol: bool = True

    @classmethod
    def from_config(cls, config: Mapping) -> "PasswordPolicy":
        defaults = cls()
        return cls(
            min_len=int(config.get("PASSWORD_MIN_LEN", defaults.min_len)),
            max_len=int(config.get("PASSWORD_MAX_LEN", defaults.max_len)),
            require_upper=bool(config.get("PASSWORD_REQUIRE_UPPER", defaults.require_upper)),
            require_lower=bool(config.get("PASSWORD_REQUIRE_LOWER", defaults.require_lower)),
            require_digit=bool(config.get("PASSWORD_REQUIRE_DIGIT", defaults.require_digit)),
            require_symbol=bool(config.get("PASSWORD_REQUIRE_SYMBOL", defaults.require_symbol)),
        )


def password_errors(pw: str, policy: Optional[PasswordPolicy] = None) -> List[str]:
    policy = policy or PasswordPolicy()
    if not isinstance(pw, str):
        return ["Password must be a string"]

    errors: List[str] = []
    if len(pw) < policy.min_len:
        errors.append(f"Password must be at least {policy.min_len} characters")
    if len(pw) > policy.max_len:
        errors.append(f"Password must be at most {policy.max_len} characters")

    if policy.require_upper and not _UPPER.search(pw):
        errors.append("Password must include at least 1 uppercase letter")
    if policy.require_lower and not _LOWER.search(pw):
        errors.append("Password must include at least 1 lowercase letter")
    if policy.require_digit and not _DIGIT.search(pw):
        errors.append("Password must include at least 1 number")
    if policy.require_symbol and not _SYMBOL.search(pw):
        errors.append("Password must include at least 1 symbol")
    return errors


def validate_password(pw: str, policy: Optional[PasswordPolicy] = None) -> None:
    errors = password_errors(pw, policy)
    if errors:
        raise PasswordValidationError("Password does not meet policy", errors)
