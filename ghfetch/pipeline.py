"""Sequential stage executor threading one context through ordered stages."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from .errors import GhFetchError, PipelineError
from .logger import get_logger

logger = get_logger()

Stage = Callable[[Any, Callable[..., None]], None]
DoneCallback = Callable[[Optional[Exception], Any], Any]


class _Continuation:
    """The ``proceed`` handed to one stage; accepts exactly one call."""

    def __init__(self, stage_name: str):
        self.stage_name = stage_name
        self.called = False
        self.context = None
        self.stop = False

    def __call__(self, context, stop: bool = False) -> None:
        if self.called:
            raise PipelineError(f"Stage '{self.stage_name}' called proceed more than once")
        self.called = True
        self.context = context
        self.stop = bool(stop)


class Pipeline:
    """
    Ordered list of stages run over a shared context.

    Each stage is ``stage(context, proceed)`` and must call ``proceed(context)``
    to continue or ``proceed(context, True)`` to end the run early without an
    error. Raising a :class:`GhFetchError` aborts the remaining stages and is
    reported to ``on_done`` as ``on_done(error, None)``. A completed or early
    stopped run reports ``on_done(None, context)``.
    """

    def __init__(self, context):
        self.context = context
        self._stages: List[Stage] = []

    @classmethod
    def init(cls, context) -> "Pipeline":
        return cls(context)

    def step(self, stage: Stage) -> "Pipeline":
        self._stages.append(stage)
        return self

    @property
    def stages(self) -> List[Stage]:
        return list(self._stages)

    def execute(self, on_done: DoneCallback):
        context = self.context
        for stage in self._stages:
            name = getattr(stage, "__name__", repr(stage))
            proceed = _Continuation(name)
            try:
                stage(context, proceed)
                if not proceed.called:
                    raise PipelineError(f"Stage '{name}' returned without calling proceed")
            except GhFetchError as exc:
                logger.error("Stage failed", stage=name, error=str(exc))
                return on_done(exc, None)

            context = proceed.context
            if proceed.stop:
                logger.debug("Pipeline stopped early", stage=name)
                break
        return on_done(None, context)
