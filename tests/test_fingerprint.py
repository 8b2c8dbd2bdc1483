import hashlib

import pytest

from modules.job_observer.lib.fingerprint import fingerprint


def test_fingerprint_is_sha256_of_joined_tokens():
    expected = hashlib.sha256(b"acme::BACKEND::PUNE").hexdigest()
    assert fingerprint("acme", "BACKEND", "PUNE") == expected
    assert len(expected) == 64


def test_fingerprint_is_deterministic_and_order_sensitive():
    a = fingerprint("acme", "BACKEND", "PUNE")
    assert a == fingerprint("acme", "BACKEND", "PUNE")
    assert a != fingerprint("acme", "PUNE", "BACKEND")
    assert a != fingerprint("acme", "BACKEND", "MUMBAI")


@pytest.mark.parametrize(
    "tokens",
    [("a::b", "BACKEND", "PUNE"), ("acme", "X::Y", "PUNE"), ("acme", "BACKEND", "::")],
)
def test_fingerprint_rejects_separator_in_tokens(tokens):
    with pytest.raises(ValueError):
        fingerprint(*tokens)
