# services/dispatcher.py
"""Runs a prompt template end to end.

resolve project (cache read-through) -> render -> call provider -> record
call metric -> result. Stages run strictly in that order; the cache and the
renderer are done before the provider call starts, so no lock is held while
waiting on the network.
"""
import asyncio
import time
from dataclasses import dataclass

import structlog

import storage.calls
import storage.projects
from models.metric import CallOutcome, ExecutionMetric
from models.project import ProjectConfig
from models.prompt import PromptTemplate
from services.config_cache import ConfigCache
from services.errors import (
    Cancelled,
    MetricRecordFailure,
    ProjectDisabled,
    ProjectNotFound,
    ProviderTimeout,
)
from services.provider import DEFAULT_TIMEOUT, ProviderParams
from services.renderer import render

logger = structlog.get_logger(__name__)

DISCONNECT_POLL_INTERVAL = 0.25


@dataclass(frozen=True)
class ExecutionResult:
    prompt_id: int | None
    project_id: int
    message: str
    role: str
    finish_reason: str | None
    model: str | None
    input_tokens: int
    output_tokens: int
    latency_ms: float

    def to_dict(self) -> dict:
        return {
            "promptId": self.prompt_id,
            "projectId": self.project_id,
            "message": self.message,
            "role": self.role,
            "finishReason": self.finish_reason,
            "model": self.model,
            "usage": {
                "inputTokens": self.input_tokens,
                "outputTokens": self.output_tokens,
            },
            "latencyMs": self.latency_ms,
        }


class ExecutionDispatcher:
    def __init__(
        self,
        cache: ConfigCache,
        provider,
        load_project=storage.projects.get_project,
        record_call=storage.calls.record_call,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.cache = cache
        self.provider = provider
        self._load_project = load_project
        self._record_call = record_call
        self.timeout = timeout

    def resolve_project(self, project_id: int) -> ProjectConfig:
        project, hit = self.cache.get(project_id)
        if not hit:
            project = self._load_project(project_id)
            if project is None:
                raise ProjectNotFound(f"project {project_id} not found")
            self.cache.set(project_id, project)
        if not project.enabled:
            raise ProjectDisabled(f"project {project_id} is disabled")
        return project

    async def run(
        self,
        template: PromptTemplate,
        variables: dict,
        timeout: float | None = None,
        is_disconnected=None,
        user_agent: str = "",
    ) -> ExecutionResult:
        return await self.execute(
            template.project_id,
            template.prompts,
            template.variables,
            variables,
            prompt_id=template.id,
            timeout=timeout,
            is_disconnected=is_disconnected,
            user_agent=user_agent,
        )

    async def execute(
        self,
        project_id: int,
        rows,
        declarations,
        variables: dict,
        prompt_id: int | None = None,
        record: bool = True,
        timeout: float | None = None,
        is_disconnected=None,
        user_agent: str = "",
    ) -> ExecutionResult:
        project = self.resolve_project(project_id)
        conversation = render(rows, variables, declarations)
        params = ProviderParams.from_project(project)
        timeout = self.timeout if timeout is None else timeout

        start = time.time()
        outcome = CallOutcome.PROVIDER_ERROR
        completion = None
        try:
            completion = await self._dispatch(conversation, params, timeout, is_disconnected)
            outcome = CallOutcome.SUCCESS
        except ProviderTimeout:
            outcome = CallOutcome.TIMEOUT
            raise
        except (Cancelled, asyncio.CancelledError):
            outcome = CallOutcome.CANCELLED
            raise
        finally:
            latency = round((time.time() - start) * 1000, 2)
            logger.info(
                "Prompt dispatched",
                project_id=project_id,
                prompt_id=prompt_id,
                model=params.model,
                outcome=outcome.value,
                latency_ms=latency,
            )
            if record:
                self._record_metric(ExecutionMetric(
                    project_id=project_id,
                    prompt_id=prompt_id,
                    outcome=outcome,
                    create_time=time.time(),
                    latency_ms=latency,
                    response_tokens=completion.output_tokens if completion else 0,
                    user_agent=user_agent,
                ))

        return ExecutionResult(
            prompt_id=prompt_id,
            project_id=project_id,
            message=completion.content,
            role=completion.role,
            finish_reason=completion.finish_reason,
            model=completion.model or params.model,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            latency_ms=latency,
        )

    async def _dispatch(self, conversation, params, timeout, is_disconnected):
        # The disconnect check runs in this task between bounded waits; only
        # the provider call is ever cancelled.
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        call = asyncio.ensure_future(self.provider.complete(conversation, params, timeout=timeout))
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise ProviderTimeout(f"llm provider timed out after {timeout}s")
                if is_disconnected is not None:
                    remaining = min(remaining, DISCONNECT_POLL_INTERVAL)
                done, _ = await asyncio.wait({call}, timeout=remaining)
                if call in done:
                    return call.result()
                if is_disconnected is not None and await is_disconnected():
                    raise Cancelled()
        finally:
            if not call.done():
                call.cancel()
                await asyncio.gather(call, return_exceptions=True)

    def _record_metric(self, metric: ExecutionMetric) -> None:
        try:
            self._record_call(metric)
        except MetricRecordFailure as e:
            logger.warning(
                "Failed to record prompt call",
                project_id=metric.project_id,
                prompt_id=metric.prompt_id,
                error=str(e),
            )
