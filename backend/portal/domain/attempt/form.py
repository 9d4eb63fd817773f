"""Deterministic per-attempt form generation.

The served order of questions and options is a pure function of
``(form_seed, test_id, attempt_id, version)``: the tuple is hashed into a
32-bit seed for a Mulberry32 generator, and the same generator stream drives
a Fisher–Yates shuffle of the questions followed by each question's options
in served order. Replaying the tuple reproduces the form exactly.
"""
from __future__ import annotations
import hashlib
import secrets
from typing import Callable, List, MutableSequence, TypeVar

from portal.domain.assessment.models import TestVersion
from portal.domain.attempt.models import FormEntry, ServedOption, ServedQuestion

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


def mulberry32(seed: int) -> Callable[[], float]:
    """Return a generator of uniform floats in [0, 1) seeded with a uint32."""
    state = seed & _MASK32

    def rng() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        t = state
        t = _imul(t ^ (t >> 15), t | 1)
        t = (t ^ ((t + _imul(t ^ (t >> 7), t | 61)) & _MASK32)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    return rng


def seed_from_string(value: str) -> int:
    """First four bytes of SHA-256(value), read as a little-endian uint32."""
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "little")


def new_form_seed() -> str:
    return secrets.token_hex(16)


def form_rng(form_seed: str, test_id: str, attempt_id: str, version: int) -> Callable[[], float]:
    return mulberry32(seed_from_string(f"{form_seed}:{test_id}:{attempt_id}:{version}"))


def shuffle_in_place(items: MutableSequence[T], rng: Callable[[], float]) -> None:
    for i in range(len(items) - 1, 0, -1):
        j = int(rng() * (i + 1))
        items[i], items[j] = items[j], items[i]


def build_form(
    version: TestVersion,
    form_seed: str,
    attempt_id: str,
    shuffle: bool,
) -> tuple[List[ServedQuestion], List[FormEntry]]:
    """Build the served question list and its frozen answer whitelist."""
    served = [
        ServedQuestion(
            id=q.id,
            prompt=q.prompt,
            points=q.points,
            options=[ServedOption(id=o.id, text=o.text) for o in q.options],
        )
        for q in version.questions
    ]

    if shuffle:
        rng = form_rng(form_seed, version.test_id, attempt_id, version.version)
        shuffle_in_place(served, rng)
        for q in served:
            shuffle_in_place(q.options, rng)

    snapshot = [FormEntry(question_id=q.id, option_ids=tuple(o.id for o in q.options)) for q in served]
    return served, snapshot
