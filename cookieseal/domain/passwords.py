"""Password normalization for sealing and rotation."""
from collections.abc import Mapping

from .errors import ConfigurationError
from .iron import MIN_PASSWORD_LENGTH

Password = str | Mapping[int | str, str]


def normalize_passwords(password: Password) -> dict[str, str]:
    """Return `{id: secret}`; a bare secret becomes `{"1": secret}`."""
    if isinstance(password, str):
        passwords = {"1": password}
    elif not isinstance(password, Mapping):
        raise ConfigurationError("Bad usage: password must be a string or a map of id to string", field="password")
    else:
        passwords = {str(key): value for key, value in password.items()}

    if not passwords:
        raise ConfigurationError("Bad usage: password map is empty", field="password")

    for password_id, secret in passwords.items():
        if not password_id.isdigit() or int(password_id) < 1:
            raise ConfigurationError(
                "Bad usage: password ids must be positive integers",
                field="password",
                id=password_id,
            )
        if not isinstance(secret, str) or len(secret) < MIN_PASSWORD_LENGTH:
            raise ConfigurationError(
                f"Bad usage: password too short, it must be at least {MIN_PASSWORD_LENGTH} characters long",
                field="password",
                id=password_id,
            )
    return passwords


def current_password(passwords: Mapping[str, str]) -> tuple[str, str]:
    """Pick the entry with the highest numeric id, the one new seals use."""
    latest = max(passwords, key=int)
    return latest, passwords[latest]
