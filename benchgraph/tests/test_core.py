"""Tests for composite keys, graph records, the registry and channels."""

import asyncio
from pathlib import Path

import pytest

from benchgraph.common import EntityKind, StageKind
from benchgraph.core import (
    Artifact,
    Channel,
    DatasetRecord,
    EntityRef,
    MethodRecord,
    MetricRecord,
    Registry,
    ResolvedUnit,
    ResourceRequest,
)
from benchgraph.core.naming import artifact_filename, format_key, make_key, stage_directory


def _unit(kind, task, name):
    return ResolvedUnit(ref=EntityRef(kind=kind, task=task, name=name), image=f"img/{name}", hash=f"h-{name}")


# ============================================================================
# Naming
# ============================================================================


def test_make_key_rejects_empty_components():
    assert make_key("taskA", "d1") == ("taskA", "d1")
    with pytest.raises(ValueError):
        make_key("taskA", "")
    with pytest.raises(ValueError):
        make_key("taskA", "   ")


def test_make_key_rejects_separator_and_path_characters():
    # ("a.b", "c") and ("a", "b.c") would otherwise share the key "a.b.c".
    for name in ("a.b", "x/y", "x\\y"):
        with pytest.raises(ValueError):
            make_key("taskA", name)
    with pytest.raises(ValueError):
        EntityRef(kind=EntityKind.DATASET, task="t", name="a.b")


def test_artifact_filenames_follow_stage_layout():
    assert artifact_filename(StageKind.LOAD, ("taskA", "d1")) == "taskA.d1.dataset.h5ad"
    assert artifact_filename(StageKind.RUN, ("taskA", "d1", "m1")) == "taskA.d1.m1.method.h5ad"
    assert artifact_filename(StageKind.EVALUATE, ("taskA", "d1", "m1", "acc")) == "taskA.d1.m1.acc.metric.txt"
    assert stage_directory(StageKind.RUN) == "methods"


def test_artifact_filename_checks_key_length():
    with pytest.raises(ValueError):
        artifact_filename(StageKind.RUN, ("taskA", "d1"))


# ============================================================================
# Records
# ============================================================================


def test_entity_ref_requires_names():
    ref = EntityRef(kind=EntityKind.METHOD, task="taskA", name="m1")
    assert str(ref) == "method:taskA.m1"
    with pytest.raises(ValueError):
        EntityRef(kind=EntityKind.METHOD, task="", name="m1")


def test_resource_request_scales_linearly():
    base = ResourceRequest(cpus=2, memory_gb=16, time_minutes=240)
    third = base.scaled(3)
    assert (third.cpus, third.memory_gb, third.time_minutes) == (6, 48, 720)
    assert base.scaled(1) == base
    with pytest.raises(ValueError):
        base.scaled(0)


def test_records_carry_composite_keys():
    d1 = _unit(EntityKind.DATASET, "taskA", "d1")
    m1 = _unit(EntityKind.METHOD, "taskA", "m1")
    acc = _unit(EntityKind.METRIC, "taskA", "acc")

    dataset = DatasetRecord("taskA", d1, Artifact(("taskA", "d1"), Path("d.h5ad")))
    method = MethodRecord("taskA", d1, m1, Artifact(("taskA", "d1", "m1"), Path("m.h5ad")))
    metric = MetricRecord("taskA", d1, m1, acc, Artifact(("taskA", "d1", "m1", "acc"), Path("x.txt")), "0.5")

    assert dataset.key == ("taskA", "d1")
    assert format_key(method.key) == "taskA.d1.m1"
    assert format_key(metric.key) == "taskA.d1.m1.acc"
    assert metric.hashes() == {"dataset": "h-d1", "method": "h-m1", "metric": "h-acc"}


def test_records_reject_mismatched_units_and_artifacts():
    d1 = _unit(EntityKind.DATASET, "taskA", "d1")
    m1 = _unit(EntityKind.METHOD, "taskA", "m1")
    other_task = _unit(EntityKind.METHOD, "taskB", "m1")

    with pytest.raises(ValueError):
        DatasetRecord("taskA", m1, Artifact(("taskA", "m1"), Path("x")))
    with pytest.raises(ValueError):
        MethodRecord("taskA", d1, other_task, Artifact(("taskA", "d1", "m1"), Path("x")))
    with pytest.raises(ValueError):
        DatasetRecord("taskA", d1, Artifact(("taskA", "d2"), Path("x")))


# ============================================================================
# Registry
# ============================================================================


def test_registry_normalizes_names():
    registry = Registry(kind="backend")
    registry.register(" Local ", object)
    assert "local" in registry
    assert registry.get("LOCAL") is object
    with pytest.raises(KeyError):
        registry.register("local", dict)
    with pytest.raises(KeyError, match="known: local"):
        registry.get("docker")


# ============================================================================
# Channel
# ============================================================================


def test_channel_yields_until_closed():
    async def scenario():
        channel = Channel.of([1, 2, 3], name="numbers")
        first = await channel.collect()
        second = await channel.collect()
        return first, second

    first, second = asyncio.run(scenario())
    assert first == [1, 2, 3]
    assert second == []


def test_channel_rejects_puts_after_close():
    async def scenario():
        channel = Channel("closed")
        channel.close()
        with pytest.raises(RuntimeError):
            await channel.put(1)

    asyncio.run(scenario())


def test_channel_consumer_waits_for_producer():
    async def scenario():
        channel = Channel("slow")

        async def produce():
            for i in range(3):
                await asyncio.sleep(0.01)
                await channel.put(i)
            channel.close()

        producer = asyncio.ensure_future(produce())
        items = await channel.collect()
        await producer
        return items

    assert asyncio.run(scenario()) == [0, 1, 2]
