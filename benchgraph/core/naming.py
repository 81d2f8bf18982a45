"""Composite keys and output file names derived from graph identities."""

from __future__ import annotations

from typing import Sequence, Tuple

from benchgraph.common import StageKind

KEY_SEPARATOR = "."

# Characters a key component may not contain; keys are joined into file names.
FORBIDDEN_KEY_CHARS = frozenset({KEY_SEPARATOR, "/", "\\"})

# Output suffix per stage; the composite key is prepended.
STAGE_SUFFIXES = {
    StageKind.LOAD: "dataset.h5ad",
    StageKind.RUN: "method.h5ad",
    StageKind.EVALUATE: "metric.txt",
}

# Number of key components carried by the artifact of each stage.
STAGE_KEY_ARITY = {
    StageKind.LOAD: 2,
    StageKind.RUN: 3,
    StageKind.EVALUATE: 4,
}


def make_key(*parts: str) -> Tuple[str, ...]:
    """Build a composite key tuple.

    Components must be non-empty and free of separator and path characters,
    so distinct tuples always format to distinct keys and file names.
    """
    for part in parts:
        if not isinstance(part, str) or not part.strip():
            raise ValueError(f"Composite key component must be a non-empty string, got {part!r}")
        check_key_component(part)
    return tuple(parts)


def check_key_component(name: str) -> None:
    bad = sorted(FORBIDDEN_KEY_CHARS.intersection(name))
    if bad:
        raise ValueError(f"name '{name}' contains reserved character(s) {''.join(bad)!r}")


def format_key(key: Sequence[str]) -> str:
    return KEY_SEPARATOR.join(key)


def artifact_filename(stage: StageKind, key: Sequence[str]) -> str:
    """File name of the artifact produced by ``stage`` for ``key``.

    >>> artifact_filename(StageKind.EVALUATE, ("taskA", "d1", "m1", "acc"))
    'taskA.d1.m1.acc.metric.txt'
    """
    expected = STAGE_KEY_ARITY[stage]
    if len(key) != expected:
        raise ValueError(f"{stage.value} artifacts need a {expected}-part key, got {tuple(key)}")
    return f"{format_key(key)}.{STAGE_SUFFIXES[stage]}"


def stage_directory(stage: StageKind) -> str:
    return {
        StageKind.LOAD: "datasets",
        StageKind.RUN: "methods",
        StageKind.EVALUATE: "metrics",
    }[stage]
