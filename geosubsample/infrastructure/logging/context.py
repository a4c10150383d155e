"""Run scopes tying together the log records of one sampling analysis."""

import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from .structured_logger import get_logger, run_context


class LoggingContext:
    """One analysis run, such as a cookies draw followed by its summary.

    ``run`` tags every record emitted inside it with the run id; ``step``
    times named parts of the run and remembers how each one ended.

    Example:
        ctx = LoggingContext()
        with ctx.run('cookies', radius=700):
            with ctx.step('draw'):
                collection = sampler.sample(...)
            ctx.report_draws(len(collection), collection.n_requested)
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex
        self.steps: Dict[str, Dict[str, Any]] = {}
        self._open: List[str] = []
        self.logger = get_logger(__name__)

    @contextmanager
    def run(self, name: str, **parameters):
        token = run_context.set(self.run_id)
        started = time.perf_counter()
        self.logger.info(f"Run {name} started", extra={'context': {'run_name': name, **parameters}})
        try:
            yield self
        finally:
            self.logger.log_timing(name, time.perf_counter() - started, steps=len(self.steps))
            run_context.reset(token)

    @contextmanager
    def step(self, name: str):
        self._open.append(name)
        started = time.perf_counter()
        status = 'completed'
        try:
            yield self
        except Exception as e:
            status = 'failed'
            self.logger.log_failure(e, operation=name)
            raise
        finally:
            seconds = time.perf_counter() - started
            self.steps[name] = {'seconds': round(seconds, 3), 'status': status}
            self._open.pop()
            self.logger.debug(f"Step {name} {status} in {seconds:.3f}s")

    @property
    def current_step(self) -> Optional[str]:
        return self._open[-1] if self._open else None

    def report_draws(self, drawn: int, requested: int):
        """Log how many of the requested subsamples were produced."""
        share = drawn / requested if requested else 0.0
        self.logger.info(
            f"{drawn}/{requested} subsamples drawn ({share:.0%})",
            extra={'context': {'drawn': drawn, 'requested': requested}}
        )
