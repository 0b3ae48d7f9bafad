import hashlib


def fingerprint(text: str) -> str:
    """Returns the 32-character lowercase MD5 hex digest of the UTF-8 encoded text.

    Used as the cache key for job descriptions. MD5 is fine here: the key only
    needs to be stable across platforms and restarts, not secure.
    """
    return hashlib.md5(text.encode("utf-8")).hexdigest()
