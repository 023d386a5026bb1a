from __future__ import annotations

import random
import re
import secrets
import string

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
USERNAME_RE = re.compile(r"^[a-z][a-z0-9]{0,15}$")

MAX_USERNAME_LEN = 16
USERNAME_SUFFIX_LEN = 4
SUBDOMAIN_BASE_MAX_LEN = 16
SUBDOMAIN_SUFFIX_LEN = 5
PASSWORD_SYMBOLS = "@#%^&*_-+="

_BASE36 = string.digits + string.ascii_lowercase


def _rng(rng: random.Random | None) -> random.Random:
    return rng if rng is not None else secrets.SystemRandom()


def sanitize_token(value: str) -> str:
    """Lowercase ``value`` and drop everything but ``[a-z0-9]``."""
    return _NON_ALNUM_RE.sub("", value.lower())


def random_suffix(length: int, *, rng: random.Random | None = None) -> str:
    chooser = _rng(rng)
    return "".join(chooser.choice(_BASE36) for _ in range(length))


def _check_suffix(suffix: str, length: int) -> str:
    if len(suffix) != length or any(ch not in _BASE36 for ch in suffix):
        raise ValueError(f"suffix must match [0-9a-z]{{{length}}}")
    return suffix


def generate_username(
    email: str,
    *,
    prefix: str = "cust",
    suffix: str | None = None,
    rng: random.Random | None = None,
) -> str:
    """Control-panel login derived from the local part of ``email``.

    The result is ``<prefix><base><suffix>``, lowercase alphanumeric, starts
    with a letter and never exceeds 16 characters.
    """
    local_part = email.split("@", 1)[0]
    prefix = sanitize_token(prefix) or "cust"
    candidate_suffix = (
        _check_suffix(suffix, USERNAME_SUFFIX_LEN)
        if suffix is not None
        else random_suffix(USERNAME_SUFFIX_LEN, rng=rng)
    )
    base_len = MAX_USERNAME_LEN - len(prefix) - USERNAME_SUFFIX_LEN
    base = sanitize_token(local_part)[: max(base_len, 0)]
    username = f"{prefix}{base}{candidate_suffix}"[:MAX_USERNAME_LEN]

    if not USERNAME_RE.fullmatch(username):
        raise ValueError("generated username is not a valid control-panel login")
    return username


def generate_password(length: int = 16, *, rng: random.Random | None = None) -> str:
    """Random password with at least one upper, lower, digit and symbol."""
    if length < 4:
        raise ValueError("password length must be at least 4")
    chooser = _rng(rng)
    required = [
        chooser.choice(string.ascii_uppercase),
        chooser.choice(string.ascii_lowercase),
        chooser.choice(string.digits),
        chooser.choice(PASSWORD_SYMBOLS),
    ]
    alphabet = string.ascii_letters + string.digits + PASSWORD_SYMBOLS
    chars = required + [chooser.choice(alphabet) for _ in range(length - len(required))]
    chooser.shuffle(chars)
    return "".join(chars)


def generate_subdomain(
    name: str,
    primary_domain: str,
    *,
    suffix: str | None = None,
    rng: random.Random | None = None,
) -> str:
    base = sanitize_token(name)[:SUBDOMAIN_BASE_MAX_LEN] or "site"
    candidate_suffix = (
        _check_suffix(suffix, SUBDOMAIN_SUFFIX_LEN)
        if suffix is not None
        else random_suffix(SUBDOMAIN_SUFFIX_LEN, rng=rng)
    )
    return f"{base}{candidate_suffix}.{primary_domain}"


def subdomain_label(subdomain: str, primary_domain: str) -> str:
    """Host part of ``subdomain`` relative to ``primary_domain``."""
    tail = f".{primary_domain}"
    if subdomain.endswith(tail):
        return subdomain[: -len(tail)]
    return subdomain
