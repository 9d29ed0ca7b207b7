"""
Coordinator wiring a source, relay workers and sinks into one pipeline run.

Usage (example from CLI):
    from iohandlers.coordinator import PipelineConfig, run_pipeline

    result = run_pipeline(PipelineConfig(input_handler="rabbitmq"), get_settings())
    print(result["source"]["items"], result["errors"])

Topology:
    source --work--> relay x N --results--> sink x M

The work channel has a single writer (the source) which closes it; the results
channel is closed once the last relay exits. The completion signal counts the
source and the sinks (1 + M) and each of them releases it exactly once.

Relays stand in for the host pipeline's resolution workers: they map each
`WorkItem` to a result line with `transform` (default: the item's text form).

Failure policies:
- "tolerant": a failing participant stops intake; everything already produced
  is drained to the sinks and the errors are reported in the result.
- "strict": a failing participant aborts every participant at its next
  blocking point and `run_pipeline` raises `PipelineError`.

Setup failures (configuration, broker connection, queue declaration) are
raised directly from `run_pipeline` under both policies, before any thread
starts.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, TypedDict

from iohandlers.channels import CancelToken, Channel, CompletionSignal, describe
from iohandlers.config import Settings
from iohandlers.domain.models import WorkItem
from iohandlers.errors import CancelledError, PipelineError
from iohandlers.handlers.abstract import Sink, SinkResult, Source, SourceResult
from iohandlers.registry import HandlerRegistry, default_registry
from iohandlers.utils.logging import get_logger
from iohandlers.utils.profiler import profile_block

log = get_logger(__name__)

FailurePolicy = Literal["tolerant", "strict"]
Transform = Callable[[WorkItem], Optional[str]]

_WAIT_SLICE_SECONDS = 0.1


def default_transform(item: WorkItem) -> Optional[str]:
    return item.to_text()


@dataclass
class PipelineConfig:
    """
    Parameters for a single pipeline run.

    `channel_capacity <= 0` means unbounded channels.
    """

    input_handler: str = "file"
    output_handler: str = "file"
    zone_mode: bool = False
    sinks: int = 1
    relay_workers: int = 1
    channel_capacity: int = 0
    shutdown_timeout: float = 10.0
    failure_policy: FailurePolicy = "tolerant"

    def __post_init__(self) -> None:
        if self.sinks < 1:
            raise ValueError("sinks must be >= 1")
        if self.relay_workers < 1:
            raise ValueError("relay_workers must be >= 1")
        if self.failure_policy not in ("tolerant", "strict"):
            raise ValueError(f"Unknown failure policy '{self.failure_policy}'")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            input_handler=settings.input_handler,
            output_handler=settings.output_handler,
            zone_mode=settings.zone_file_input,
            sinks=settings.sink_count,
            relay_workers=settings.relay_workers,
            channel_capacity=settings.channel_capacity,
            shutdown_timeout=settings.shutdown_timeout_seconds,
            failure_policy=settings.failure_policy,
        )


class PipelineResult(TypedDict, total=False):
    source: Optional[SourceResult]
    sinks: List[SinkResult]
    relayed: int
    completed: bool
    errors: Dict[str, str]
    profile: Dict[str, Any]


class _Run:
    """Mutable state shared by the threads of one pipeline run."""

    def __init__(self, config: PipelineConfig, intake: CancelToken) -> None:
        self.config = config
        self.intake = intake
        self.abort = CancelToken()
        self.lock = threading.Lock()
        self.outcomes: Dict[str, Any] = {}
        self.errors: Dict[str, BaseException] = {}
        self.live_sinks = config.sinks
        self.live_relays = config.relay_workers
        self.relayed = 0

    def fail(self, participant: str, exc: BaseException, is_sink: bool = False) -> None:
        with self.lock:
            self.errors[participant] = exc
            if is_sink:
                self.live_sinks -= 1
            no_sinks_left = self.live_sinks == 0
        log.error(
            f"[PARTICIPANT FAILED] {participant}",
            extra={
                "participant": participant,
                "error": str(exc),
                "policy": self.config.failure_policy,
            },
        )
        self.intake.cancel()
        if self.config.failure_policy == "strict" or no_sinks_left:
            self.abort.cancel()


def _initialize_all(source: Source, sinks: List[Sink], settings: Settings) -> None:
    """Initialize every participant; on failure close the ones already initialized."""
    ready: List[Any] = []
    try:
        for participant in [source, *sinks]:
            participant.initialize(settings)
            ready.append(participant)
    except Exception:
        for participant in ready:
            participant.close()
        raise


def _source_worker(
    run: _Run, source: Source, work: Channel[WorkItem], completion: CompletionSignal
) -> None:
    try:
        run.outcomes[source.participant] = source.feed_channel(
            work, completion, zone_mode=run.config.zone_mode, cancel=run.intake
        )
    except Exception as exc:  # noqa: BLE001 - recorded and handled per failure policy
        run.fail(source.participant, exc)


def _relay_worker(
    run: _Run,
    name: str,
    work: Channel[WorkItem],
    results: Channel[str],
    transform: Transform,
) -> None:
    relayed = 0
    try:
        for item in work.iter_items(run.abort):
            line = transform(item)
            if line is not None:
                results.send(line, run.abort)
                relayed += 1
    except CancelledError:
        log.warning(f"[RELAY CANCELLED] {name}", extra={"participant": name, "items": relayed})
    except Exception as exc:  # noqa: BLE001 - recorded and handled per failure policy
        run.fail(name, exc)
    finally:
        with run.lock:
            run.relayed += relayed
            run.live_relays -= 1
            last = run.live_relays == 0
        if last:
            results.close()


def _sink_worker(run: _Run, sink: Sink, results: Channel[str], completion: CompletionSignal) -> None:
    try:
        run.outcomes[sink.participant] = sink.write_results(results, completion, cancel=run.abort)
    except Exception as exc:  # noqa: BLE001 - recorded and handled per failure policy
        run.fail(sink.participant, exc, is_sink=True)


def _wait_for_completion(
    run: _Run, completion: CompletionSignal, channels: List[Channel[Any]]
) -> bool:
    """
    Wait for every source/sink to release the signal.

    Without cancellation this blocks as long as the source keeps producing.
    Once intake is cancelled, participants get `shutdown_timeout` to drain, then
    they are aborted and get one more `shutdown_timeout` to exit.
    """
    drain_deadline: Optional[float] = None
    abort_deadline: Optional[float] = None
    while not completion.wait(timeout=_WAIT_SLICE_SECONDS):
        now = time.monotonic()
        if run.intake.cancelled and drain_deadline is None:
            drain_deadline = now + run.config.shutdown_timeout
        if drain_deadline is not None and now >= drain_deadline and not run.abort.cancelled:
            log.warning(
                "[SHUTDOWN] Drain timeout exceeded; aborting participants",
                extra={"channels": [describe(ch) for ch in channels]},
            )
            run.abort.cancel()
        if run.abort.cancelled and abort_deadline is None:
            abort_deadline = now + run.config.shutdown_timeout
        if abort_deadline is not None and now >= abort_deadline:
            log.error(
                "[SHUTDOWN] Participants did not stop in time",
                extra={"remaining": completion.remaining},
            )
            return False
    return True


def run_pipeline(
    config: PipelineConfig,
    settings: Settings,
    registry: Optional[HandlerRegistry] = None,
    transform: Optional[Transform] = None,
    cancel: Optional[CancelToken] = None,
) -> PipelineResult:
    """
    Run one source, `config.relay_workers` relays and `config.sinks` sinks to completion.

    Parameters
    ----------
    config : PipelineConfig
        Handler names, sizing and failure policy.
    settings : Settings
        Global configuration passed to every handler's `initialize`.
    registry : HandlerRegistry | None
        Where handler names are resolved. Defaults to `default_registry()`.
    transform : callable | None
        Maps a work item to a result line; `None` results are dropped.
    cancel : CancelToken | None
        Cancelling it stops intake; already produced items are still drained.

    Returns
    -------
    PipelineResult
        Per-participant results, relay count, errors and profiling stats.

    Raises
    ------
    IOHandlerError
        If a handler fails to initialize.
    PipelineError
        Under the strict policy, if any participant failed.
    """
    registry = registry or default_registry()
    transform = transform or default_transform
    intake = cancel or CancelToken()

    source = registry.create_input(config.input_handler)
    sinks = [registry.create_output(config.output_handler) for _ in range(config.sinks)]
    if len(sinks) > 1:
        for index, sink in enumerate(sinks, start=1):
            sink.participant = f"{sink.participant}#{index}"

    log.info(
        f"[PIPELINE START] {config.input_handler} -> {config.output_handler}",
        extra={
            "sinks": config.sinks,
            "relay_workers": config.relay_workers,
            "capacity": config.channel_capacity,
            "policy": config.failure_policy,
        },
    )
    _initialize_all(source, sinks, settings)

    run = _Run(config, intake)
    work: Channel[WorkItem] = Channel(maxsize=config.channel_capacity, name="work")
    results: Channel[str] = Channel(maxsize=config.channel_capacity, name="results")
    completion = CompletionSignal(1 + len(sinks))

    threads = [
        threading.Thread(
            target=_source_worker,
            args=(run, source, work, completion),
            name=source.participant,
            daemon=True,
        )
    ]
    for index in range(1, config.relay_workers + 1):
        name = f"relay#{index}"
        threads.append(
            threading.Thread(
                target=_relay_worker,
                args=(run, name, work, results, transform),
                name=name,
                daemon=True,
            )
        )
    for sink in sinks:
        threads.append(
            threading.Thread(
                target=_sink_worker,
                args=(run, sink, results, completion),
                name=sink.participant,
                daemon=True,
            )
        )

    with profile_block("pipeline") as stats:
        for thread in threads:
            thread.start()
        completed = _wait_for_completion(run, completion, [work, results])
        for thread in threads:
            thread.join(timeout=config.shutdown_timeout if completed else 0)

    result = PipelineResult(
        source=run.outcomes.get(source.participant),
        sinks=[run.outcomes[s.participant] for s in sinks if s.participant in run.outcomes],
        relayed=run.relayed,
        completed=completed,
        errors={name: str(exc) for name, exc in run.errors.items()},
        profile=stats.as_dict(),
    )
    log.info(
        "[PIPELINE COMPLETE]",
        extra={"relayed": run.relayed, "errors": len(run.errors), "completed": completed},
    )

    if run.errors and config.failure_policy == "strict":
        first_name, first_exc = next(iter(run.errors.items()))
        raise PipelineError(f"{first_name} failed: {first_exc}", run.errors) from first_exc
    return result


__all__ = [
    "FailurePolicy",
    "PipelineConfig",
    "PipelineResult",
    "Transform",
    "default_transform",
    "run_pipeline",
]
