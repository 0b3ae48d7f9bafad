import re

from cvtailor.services.hashing import fingerprint


def test_fingerprint_is_stable_md5_hex():
    # Known MD5 of the UTF-8 bytes, identical on every platform
    assert fingerprint("") == "d41d8cd98f00b204e9800998ecf8427e"
    assert fingerprint("hello") == "5d41402abc4b2a76b9719d911017c592"


def test_fingerprint_is_deterministic_and_fixed_length():
    text = "Senior Backend Engineer at Acme Corp. Python, PostgreSQL, Kubernetes."
    first = fingerprint(text)
    assert first == fingerprint(text)
    assert re.fullmatch(r"[0-9a-f]{32}", first)


def test_fingerprint_handles_non_ascii_text():
    assert fingerprint("Ingénieur logiciel à Zürich") != fingerprint("Ingenieur logiciel a Zurich")
    assert len(fingerprint("エンジニア募集")) == 32


def test_no_collisions_over_ten_thousand_distinct_inputs():
    corpus = [f"Job description #{i}: build services in Python for team {i % 97}" for i in range(10_000)]
    assert len(set(corpus)) == 10_000
    assert len({fingerprint(text) for text in corpus}) == 10_000
