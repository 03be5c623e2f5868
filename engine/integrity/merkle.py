"""Canonical JSON hashing and Merkle root computation.

Checksums must agree byte-for-byte with the ones LangShake publishers
embed in their modules, so serialization follows JSON rules exactly:
object keys sorted recursively, array order preserved, no whitespace,
strings escaped but not ASCII-escaped, integral floats printed as ints.
"""

import hashlib
import json
import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

CHECKSUM_FIELD = "checksum"

_SURROGATE = re.compile("[\ud800-\udfff]")
_SURROGATE_PAIR = re.compile("[\ud800-\udbff][\udc00-\udfff]")


def _scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if not math.isfinite(value):
            return "null"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _number(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return _string(value)
    raise TypeError(f"Object of type {type(value).__name__} cannot be canonicalized")


def _number(value: float) -> str:
    """
    Non-integral float in ECMAScript Number::toString form.

    Shortest round-trip digits come from repr; plain decimal notation is
    used for 1e-7 <= |x| < 1e21, exponent notation without zero padding
    otherwise (0.00001, 1e-7, 1.5e-10, 1e+21).
    """
    sign = "-" if value < 0 else ""
    mantissa, _, exponent = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    raw = int_part + frac_part
    digits = raw.lstrip("0")
    # value == 0.<digits> * 10 ** point
    point = len(int_part) - (len(raw) - len(digits)) + int(exponent or 0)
    digits = digits.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        text = digits + "0" * (point - k)
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        e = point - 1
        e_text = f"e+{e}" if e >= 0 else f"e-{-e}"
        text = digits + e_text if k == 1 else f"{digits[0]}.{digits[1:]}{e_text}"
    return sign + text


def _combine_pair(match: re.Match) -> str:
    high, low = match.group()
    return chr(0x10000 + ((ord(high) - 0xD800) << 10) + (ord(low) - 0xDC00))


def _string(value: str) -> str:
    text = json.dumps(value, ensure_ascii=False)
    if not _SURROGATE.search(text):
        return text
    # Well-formed JSON text: pairs become one character, lone surrogates
    # are escaped as lowercase \udxxx
    text = _SURROGATE_PAIR.sub(_combine_pair, text)
    return _SURROGATE.sub(lambda m: f"\\u{ord(m.group()):04x}", text)


def canonicalize(value: Any) -> str:
    """
    Deterministic JSON text for any JSON-like value.

    Mappings are serialized with their keys sorted lexicographically at
    every depth; sequences keep their order.
    """
    if isinstance(value, Mapping):
        items = sorted(((str(k), v) for k, v in value.items()), key=lambda kv: kv[0])
        body = ",".join(f"{_string(k)}:{canonicalize(v)}" for k, v in items)
        return "{" + body + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonicalize(v) for v in value) + "]"
    return _scalar(value)


def _checksum_view(records: Sequence[Any] | Mapping[str, Any]) -> dict[str, Any]:
    # Published checksums key the top level by index string ("0", "1", ...)
    if isinstance(records, Mapping):
        return {str(k): v for k, v in records.items() if k != CHECKSUM_FIELD}
    return {str(i): record for i, record in enumerate(records)}


def compute_checksum(records: Sequence[Any] | Mapping[str, Any]) -> str:
    """
    SHA-256 hex digest of a record list (or single record object).

    A top-level ``checksum`` field is never part of the digest.

    Args:
        records: Ordered list of structured records, or one record object

    Returns:
        Lowercase hex digest
    """
    text = canonicalize(_checksum_view(records))
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _hash_pair(left: str, right: str) -> str:
    return hashlib.sha256((left + right).encode("utf-8")).hexdigest()


def compute_merkle_root(leaves: Iterable[str]) -> str:
    """
    Merkle root over an ordered list of hex leaves.

    Adjacent leaves are hashed pairwise (hex text concatenated, SHA-256,
    hex-encoded); a dangling last leaf is paired with itself. An empty
    list yields "" and a single leaf is returned unchanged.
    """
    level = list(leaves)
    if not level:
        return ""

    while len(level) > 1:
        next_level = []
        for i in range(0, len(level), 2):
            left = level[i]
            right = level[i + 1] if i + 1 < len(level) else left
            next_level.append(_hash_pair(left, right))
        level = next_level

    return level[0]


@dataclass(frozen=True)
class MerkleIndex:
    """Module paths and hashes in Merkle leaf order."""

    module_paths: list[str]
    hashes: list[str]
    merkle_root: str


def prepare_merkle_index(modules: Iterable[tuple[str, str]]) -> MerkleIndex:
    """
    Build the Merkle index a publisher embeds in its manifest.

    Args:
        modules: (path, checksum) pairs in any order

    Returns:
        MerkleIndex sorted by path for determinism
    """
    ordered = sorted(modules, key=lambda m: m[0])
    paths = [path for path, _ in ordered]
    hashes = [digest for _, digest in ordered]
    return MerkleIndex(
        module_paths=paths,
        hashes=hashes,
        merkle_root=compute_merkle_root(hashes),
    )


def build_module_document(records: Sequence[Any]) -> list[Any]:
    """Records followed by their ``{"checksum": ...}`` trailer."""
    return [*records, {CHECKSUM_FIELD: compute_checksum(records)}]
