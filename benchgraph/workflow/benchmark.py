"""Benchmark workflow controller: drives one run of the task graph.

The run is a set of concurrent stages connected by channels:

    tasks -> dataset refs -> resolve + load ----------+
          -> method refs  -> resolve -----------------+-> join by task -> run --+
          -> metric refs  -> resolve ------------------------------------------+-> join by task -> evaluate

Every stage streams: a dataset that finishes loading is joined with the
methods of its task that are already resolved and runs immediately, without
waiting for the other datasets. Listing, resolution and execution failures
only remove the affected branch of the graph; they are recorded and reported
in the run summary.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterable, Awaitable, Callable, Dict, List, Optional

from benchgraph.backend import IsolationBackend, get_backend
from benchgraph.collaborator import Collaborator, CommandCollaborator
from benchgraph.common import EntityKind, StageKind
from benchgraph.config import Settings, get_settings, validate_run_settings
from benchgraph.core import (
    Channel,
    DatasetRecord,
    EntityRef,
    MethodRecord,
    MetricRecord,
    ResolvedUnit,
    UnitResult,
    WorkflowController,
    WorkflowState,
)
from benchgraph.core.naming import format_key, make_key
from benchgraph.errors import ConfigError, ListingError, ResolutionError
from benchgraph.notify import Notifier, get_notifier
from benchgraph.planning import (
    GraphExpander,
    Resolver,
    combine,
    combine_streams,
    listing_failure,
    resolution_failure,
)
from benchgraph.schema import FailureReport, PlanReport, RunSummary
from benchgraph.storage import OutputLayout, ResultsStore
from benchgraph.utils import get_error_description
from benchgraph.worker import RetryPolicy, StageExecutor

logger = logging.getLogger("benchgraph.workflow")


def new_run_id() -> str:
    return f"{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}-{uuid.uuid4().hex[:6]}"


async def _fan_out(
    source: AsyncIterable[Any],
    handler: Callable[[Any], Awaitable[None]],
    sink: Optional[Channel] = None,
) -> None:
    """Start ``handler`` for every item as it arrives, wait for all, then close ``sink``."""
    pending: List[asyncio.Future] = []
    try:
        async for item in source:
            pending.append(asyncio.ensure_future(handler(item)))
        await asyncio.gather(*pending)
    except BaseException:
        for task in pending:
            task.cancel()
        raise
    finally:
        if sink is not None:
            sink.close()


async def _run_stages(*coros: Awaitable[None]) -> None:
    stages = [asyncio.ensure_future(c) for c in coros]
    try:
        await asyncio.gather(*stages)
    except BaseException:
        for stage in stages:
            stage.cancel()
        raise


def _read_metric_value(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read metric value from {path}: {e}")
        return None


class BenchmarkWorkflowController(WorkflowController):
    """Main controller for a benchmark run."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        collaborator: Optional[Collaborator] = None,
        backend: Optional[IsolationBackend] = None,
        notifier: Optional[Notifier] = None,
        run_id: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self._own_collaborator = collaborator is None
        self._own_backend = backend is None
        self.collaborator = collaborator or CommandCollaborator(
            self.settings.collaborator_argv(),
            test_mode=self.settings.test_mode,
            timeout=self.settings.lookup_timeout,
        )
        if backend is None:
            backend_kwargs: Dict[str, Any] = {}
            if self.settings.isolation_backend == "docker":
                backend_kwargs["docker_command"] = self.settings.docker_command
            backend = get_backend(self.settings.isolation_backend, **backend_kwargs)
        self.backend = backend
        self.notifier = notifier or get_notifier(
            self.settings.notification_address,
            timeout=self.settings.notification_timeout,
        )
        self.run_id = run_id or new_run_id()
        self.layout = OutputLayout(Path(self.settings.output_dir))
        self.store = ResultsStore(self.layout.results_path, self.layout.summary_path, self.layout.report_path)

    def _check_settings(self) -> None:
        validate_run_settings(
            self.settings,
            check_collaborator=self._own_collaborator,
            check_backend=self._own_backend,
        )

    async def validate(self) -> Dict[str, Any]:
        try:
            self._check_settings()
        except ConfigError as e:
            return {"valid": False, "errors": [str(e)]}
        return {"valid": True, "errors": []}

    def _expander(self) -> GraphExpander:
        return GraphExpander(self.collaborator, max_concurrency=self.settings.max_concurrent_lookups)

    def _resolver(self) -> Resolver:
        return Resolver(self.collaborator, max_concurrency=self.settings.max_concurrent_lookups)

    def _executor(self) -> StageExecutor:
        policy = RetryPolicy(
            max_attempts=self.settings.max_attempts,
            delay_seconds=self.settings.retry_delay_seconds,
            max_cpus=self.settings.max_cpus,
            max_memory_gb=self.settings.max_memory_gb,
        )
        return StageExecutor(
            self.collaborator,
            self.backend,
            self.layout,
            Path(self.settings.work_dir),
            base_resources=self.settings.base_resources,
            policy=policy,
            max_concurrency=self.settings.max_concurrent_units,
            keep_work_dirs=self.settings.keep_work_dirs,
            run_id=self.run_id,
        )

    async def run(self) -> RunSummary:
        """Execute the whole graph and return the run summary.

        Raises ``ConfigError`` before any work starts; every other failure is
        recorded in the summary instead of raised.
        """
        self._check_settings()

        state = WorkflowState(data={"started_at": datetime.now(timezone.utc), "records": []})
        self.store.reset()
        logger.info(
            f"Run {self.run_id} starting (test_mode={self.settings.test_mode}, "
            f"backend={self.settings.isolation_backend}, output={self.layout.root})"
        )
        try:
            await self._execute(state)
            summary = await self.aggregate(state)
            await self.notifier.notify(summary)
        finally:
            await self.notifier.close()
            await self.backend.close()
        return summary

    async def _execute(self, state: WorkflowState) -> None:
        expander = self._expander()
        resolver = self._resolver()
        executor = self._executor()

        try:
            tasks = await expander.list_tasks()
        except ListingError as e:
            logger.error(str(e))
            state.fail(listing_failure(e))
            return
        state.tasks = tasks
        if not tasks:
            logger.warning("Collaborator listed no tasks")
            return
        logger.info(f"Listed {len(tasks)} task(s): {', '.join(tasks)}")

        refs = {kind: Channel(f"{kind.value}-refs") for kind in EntityKind}
        resolved_methods: Channel[ResolvedUnit] = Channel("resolved-methods")
        resolved_metrics: Channel[ResolvedUnit] = Channel("resolved-metrics")
        dataset_records: Channel[DatasetRecord] = Channel("dataset-records")
        method_records: Channel[MethodRecord] = Channel("method-records")

        await _run_stages(
            *(expander.stream(tasks, kind, refs[kind], state.failures) for kind in EntityKind),
            self._load_datasets(refs[EntityKind.DATASET], resolver, executor, dataset_records, state),
            self._resolve_stream(refs[EntityKind.METHOD], resolver, resolved_methods, state),
            self._resolve_stream(refs[EntityKind.METRIC], resolver, resolved_metrics, state),
            self._run_methods(dataset_records, resolved_methods, executor, method_records, state),
            self._evaluate_metrics(method_records, resolved_metrics, executor, state),
        )

    async def _resolve_or_fail(
        self, resolver: Resolver, ref: EntityRef, state: WorkflowState
    ) -> Optional[ResolvedUnit]:
        try:
            return await resolver.resolve(ref)
        except ResolutionError as e:
            logger.error(str(e))
            state.fail(resolution_failure(e))
            return None

    async def _resolve_stream(
        self,
        refs: Channel[EntityRef],
        resolver: Resolver,
        sink: Channel[ResolvedUnit],
        state: WorkflowState,
    ) -> None:
        async def _one(ref: EntityRef) -> None:
            unit = await self._resolve_or_fail(resolver, ref, state)
            if unit is not None:
                await sink.put(unit)

        await _fan_out(refs, _one, sink)

    async def _load_datasets(
        self,
        refs: Channel[EntityRef],
        resolver: Resolver,
        executor: StageExecutor,
        sink: Channel[DatasetRecord],
        state: WorkflowState,
    ) -> None:
        async def _one(ref: EntityRef) -> None:
            unit = await self._resolve_or_fail(resolver, ref, state)
            if unit is None:
                return
            key = make_key(unit.task, unit.name)
            result = await executor.run_unit(unit, StageKind.LOAD, [], key)
            await self._settle(state, result)
            if result.succeeded:
                await sink.put(DatasetRecord(task=unit.task, dataset=unit, artifact=result.artifact))

        await _fan_out(refs, _one, sink)

    async def _run_methods(
        self,
        datasets: Channel[DatasetRecord],
        methods: Channel[ResolvedUnit],
        executor: StageExecutor,
        sink: Channel[MethodRecord],
        state: WorkflowState,
    ) -> None:
        async def _one(pair) -> None:
            dataset, method = pair
            key = make_key(dataset.task, dataset.dataset.name, method.name)
            result = await executor.run_unit(method, StageKind.RUN, [dataset.artifact], key)
            await self._settle(state, result)
            if result.succeeded:
                await sink.put(
                    MethodRecord(
                        task=dataset.task,
                        dataset=dataset.dataset,
                        method=method,
                        artifact=result.artifact,
                    )
                )

        await _fan_out(combine_streams(datasets, methods, name="datasets x methods"), _one, sink)

    async def _evaluate_metrics(
        self,
        methods: Channel[MethodRecord],
        metrics: Channel[ResolvedUnit],
        executor: StageExecutor,
        state: WorkflowState,
    ) -> None:
        async def _one(pair) -> None:
            method_record, metric = pair
            key = make_key(method_record.task, method_record.dataset.name, method_record.method.name, metric.name)
            result = await executor.run_unit(metric, StageKind.EVALUATE, [method_record.artifact], key)
            await self._settle(state, result)
            if not result.succeeded:
                return
            record = MetricRecord(
                task=method_record.task,
                dataset=method_record.dataset,
                method=method_record.method,
                metric=metric,
                artifact=result.artifact,
                value=_read_metric_value(result.artifact.path),
            )
            state.data["records"].append(record)

        await _fan_out(combine_streams(methods, metrics, name="methods x metrics"), _one)

    async def _settle(self, state: WorkflowState, result: UnitResult) -> None:
        state.record(result)
        self.store.append(self.run_id, result)
        await self.on_unit_finished(state, result)

    async def on_unit_finished(self, state: WorkflowState, result: UnitResult) -> None:
        if result.succeeded:
            logger.info(f"[{result.stage.value}] {result.composite_key} completed in {result.attempts} attempt(s)")
        else:
            description = get_error_description(result.error_code) if result.error_code else "unclassified"
            logger.error(
                f"[{result.stage.value}] {result.composite_key} failed after {result.attempts} attempt(s): "
                f"{result.error_message}"
                f" ({description})"
            )

    async def aggregate(self, state: WorkflowState) -> RunSummary:
        summary = RunSummary.build(
            run_id=self.run_id,
            started_at=state.data.get("started_at") or datetime.now(timezone.utc),
            finished_at=datetime.now(timezone.utc),
            tasks=state.tasks,
            results=state.results,
            failures=state.failures,
            metric_values={format_key(r.key): r.value for r in state.data.get("records", [])},
            test_mode=self.settings.test_mode,
        )
        self.store.write_summary(summary)
        log = logger.info if summary.success else logger.warning
        log(
            f"Run {self.run_id} {summary.status}: {len(summary.metric_results)} metric result(s), "
            f"{len(summary.failed_units)} failed unit(s), {len(summary.failures)} planning failure(s)"
        )
        return summary

    async def plan(self) -> PlanReport:
        """Expand and resolve the graph without executing anything."""
        self._check_settings()

        expander = self._expander()
        resolver = self._resolver()

        try:
            tasks = await expander.list_tasks()
        except ListingError as e:
            logger.error(str(e))
            return PlanReport(failures=[FailureReport.from_failure(listing_failure(e))])

        expansions = await expander.expand_all(tasks)
        kinds = list(EntityKind)
        resolutions = await asyncio.gather(*(resolver.resolve_many(expansions[kind].refs) for kind in kinds))

        failures = [f for kind in kinds for f in expansions[kind].failures]
        resolved: Dict[EntityKind, List[ResolvedUnit]] = {}
        for kind, (units, resolution_failures) in zip(kinds, resolutions):
            resolved[kind] = units
            failures.extend(resolution_failures)

        datasets = resolved[EntityKind.DATASET]
        runs = combine(datasets, resolved[EntityKind.METHOD])
        evaluations = combine(runs, resolved[EntityKind.METRIC], key_left=lambda pair: pair[0].task)

        return PlanReport(
            tasks=tasks,
            datasets=[format_key((d.task, d.name)) for d in datasets],
            methods=[format_key((d.task, d.name, m.name)) for d, m in runs],
            metrics=[format_key((d.task, d.name, m.name, x.name)) for (d, m), x in evaluations],
            failures=sorted((FailureReport.from_failure(f) for f in failures), key=lambda f: f.key),
        )
