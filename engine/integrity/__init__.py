"""Canonical hashing and Merkle roots for LangShake data."""

from engine.integrity.merkle import (
    MerkleIndex,
    build_module_document,
    canonicalize,
    compute_checksum,
    compute_merkle_root,
    prepare_merkle_index,
)

__all__ = [
    "canonicalize",
    "compute_checksum",
    "compute_merkle_root",
    "prepare_merkle_index",
    "build_module_document",
    "MerkleIndex",
]
