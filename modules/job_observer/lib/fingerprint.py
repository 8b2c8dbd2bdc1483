from __future__ import annotations

import hashlib

SEPARATOR = "::"


def fingerprint(company: str, role: str, location: str) -> str:
    """
    Identity key of a job: hex SHA-256 over the three normalized tokens.

    Salary, skills, description, dates and URLs are claims about a job and
    never part of its identity.
    """
    for name, token in (("company", company), ("role", role), ("location", location)):
        if SEPARATOR in token:
            raise ValueError(f"{name} token may not contain {SEPARATOR!r}: {token!r}")
    payload = SEPARATOR.join((company, role, location))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
