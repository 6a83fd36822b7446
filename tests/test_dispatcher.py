"""Tests for the prompt execution pipeline."""

import asyncio

import pytest
from starlette.requests import Request

from factories import FakeProvider, make_project
from models.metric import CallOutcome
from models.prompt import MessageRow, PromptTemplate, PublicLevel, VariableDeclaration
from services.config_cache import ConfigCache
from services.dispatcher import ExecutionDispatcher
from services.errors import (
    Cancelled,
    MetricRecordFailure,
    MissingVariable,
    ProjectDisabled,
    ProjectNotFound,
    ProviderError,
    ProviderTimeout,
    StoreUnavailable,
)


class FakeStore:
    def __init__(self, *projects):
        self.projects = {p.id: p for p in projects}
        self.loads = 0
        self.metrics = []
        self.fail_metrics = False

    def load_project(self, project_id):
        self.loads += 1
        return self.projects.get(project_id)

    def record_call(self, metric):
        if self.fail_metrics:
            raise MetricRecordFailure("disk full")
        self.metrics.append(metric)
        return len(self.metrics)


def make_template(project_id=1, prompt_id=10):
    return PromptTemplate(
        id=prompt_id,
        project_id=project_id,
        name="greeter",
        description="",
        prompts=(
            MessageRow(role="system", prompt="You are friendly."),
            MessageRow(role="user", prompt="Hello, {{name}}!"),
        ),
        variables=(VariableDeclaration(name="name"),),
        public_level=PublicLevel.PUBLIC,
        token_count=0,
        creator_id=1,
        create_time=0.0,
        update_time=0.0,
    )


def http_request(disconnect: bool = False) -> Request:
    """A Starlette request whose receive blocks after the body, like a live server's."""
    body_sent = False

    async def receive():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": b"{}", "more_body": False}
        if disconnect:
            return {"type": "http.disconnect"}
        await asyncio.Event().wait()

    scope = {"type": "http", "method": "POST", "path": "/", "headers": [], "query_string": b""}
    return Request(scope, receive)


@pytest.fixture
def store():
    return FakeStore(make_project(1, model="gpt-a"), make_project(42, enabled=False))


@pytest.fixture
def fake_provider():
    return FakeProvider(content="Hi Ada")


@pytest.fixture
def dispatcher(store, fake_provider):
    return ExecutionDispatcher(
        ConfigCache(ttl=60),
        fake_provider,
        load_project=store.load_project,
        record_call=store.record_call,
        timeout=5,
    )


class TestResolveProject:

    def test_read_through(self, dispatcher, store):
        assert dispatcher.resolve_project(1).model == "gpt-a"
        assert dispatcher.resolve_project(1).model == "gpt-a"
        assert store.loads == 1

    def test_cache_hit_skips_store(self, dispatcher, store):
        dispatcher.cache.set(1, make_project(1, update_time=5.0, model="gpt-cached"))
        assert dispatcher.resolve_project(1).model == "gpt-cached"
        assert store.loads == 0

    def test_unknown_project(self, dispatcher):
        with pytest.raises(ProjectNotFound):
            dispatcher.resolve_project(404)

    def test_disabled_project(self, dispatcher):
        with pytest.raises(ProjectDisabled):
            dispatcher.resolve_project(42)

    def test_store_failure_propagates(self, fake_provider):
        def broken(project_id):
            raise StoreUnavailable("database is locked")

        dispatcher = ExecutionDispatcher(ConfigCache(), fake_provider, load_project=broken)
        with pytest.raises(StoreUnavailable):
            dispatcher.resolve_project(1)


class TestRun:

    @pytest.mark.asyncio
    async def test_success(self, dispatcher, fake_provider, store):
        result = await dispatcher.run(make_template(), {"name": "Ada"}, user_agent="pytest")

        assert result.message == "Hi Ada"
        assert result.prompt_id == 10
        assert result.project_id == 1
        assert result.model == "gpt-a"
        assert (result.input_tokens, result.output_tokens) == (3, 5)

        conversation, params = fake_provider.calls[0]
        assert [m.to_dict() for m in conversation] == [
            {"role": "system", "content": "You are friendly."},
            {"role": "user", "content": "Hello, Ada!"},
        ]
        assert params.model == "gpt-a"
        assert params.token == "sk-test"
        assert params.max_tokens == 256

        [metric] = store.metrics
        assert metric.outcome == CallOutcome.SUCCESS
        assert (metric.project_id, metric.prompt_id) == (1, 10)
        assert metric.response_tokens == 5
        assert metric.user_agent == "pytest"

    @pytest.mark.asyncio
    async def test_to_dict(self, dispatcher):
        result = await dispatcher.run(make_template(), {"name": "Ada"})
        data = result.to_dict()
        assert data["message"] == "Hi Ada"
        assert data["usage"] == {"inputTokens": 3, "outputTokens": 5}

    @pytest.mark.asyncio
    async def test_disabled_project_never_calls_provider(self, dispatcher, fake_provider, store):
        with pytest.raises(ProjectDisabled):
            await dispatcher.run(make_template(project_id=42), {"name": "Ada"})
        assert fake_provider.calls == []
        assert store.metrics == []

    @pytest.mark.asyncio
    async def test_missing_variable(self, dispatcher, fake_provider, store):
        with pytest.raises(MissingVariable) as exc:
            await dispatcher.run(make_template(), {})
        assert exc.value.name == "name"
        assert fake_provider.calls == []
        assert store.metrics == []

    @pytest.mark.asyncio
    async def test_provider_error_is_recorded(self, dispatcher, fake_provider, store):
        fake_provider.error = ProviderError(500, "boom")
        with pytest.raises(ProviderError):
            await dispatcher.run(make_template(), {"name": "Ada"})
        assert len(fake_provider.calls) == 1
        assert store.metrics[0].outcome == CallOutcome.PROVIDER_ERROR

    @pytest.mark.asyncio
    async def test_timeout_cancels_provider_call(self, dispatcher, fake_provider, store):
        fake_provider.delay = 5
        with pytest.raises(ProviderTimeout):
            await dispatcher.run(make_template(), {"name": "Ada"}, timeout=0.05)
        assert fake_provider.cancelled is True
        assert store.metrics[0].outcome == CallOutcome.TIMEOUT

    @pytest.mark.asyncio
    async def test_disconnect_cancels_provider_call(self, dispatcher, fake_provider, store):
        fake_provider.delay = 5

        async def disconnected():
            return True

        with pytest.raises(Cancelled):
            await dispatcher.run(make_template(), {"name": "Ada"}, is_disconnected=disconnected)
        assert fake_provider.cancelled is True
        assert store.metrics[0].outcome == CallOutcome.CANCELLED

    @pytest.mark.asyncio
    async def test_connected_client_gets_result(self, dispatcher):
        async def connected():
            return False

        result = await dispatcher.run(make_template(), {"name": "Ada"}, is_disconnected=connected)
        assert result.message == "Hi Ada"

    @pytest.mark.asyncio
    async def test_live_request_returns_result(self, dispatcher, store):
        request = http_request()
        await request.body()

        result = await asyncio.wait_for(
            dispatcher.run(make_template(), {"name": "Ada"}, is_disconnected=request.is_disconnected),
            timeout=3,
        )
        assert result.message == "Hi Ada"
        assert store.metrics[0].outcome == CallOutcome.SUCCESS

    @pytest.mark.asyncio
    async def test_live_request_slow_provider(self, dispatcher, fake_provider):
        fake_provider.delay = 0.6
        request = http_request()
        await request.body()

        result = await asyncio.wait_for(
            dispatcher.run(make_template(), {"name": "Ada"}, is_disconnected=request.is_disconnected),
            timeout=3,
        )
        assert result.message == "Hi Ada"
        assert fake_provider.cancelled is False

    @pytest.mark.asyncio
    async def test_live_request_disconnect(self, dispatcher, fake_provider, store):
        fake_provider.delay = 5
        request = http_request(disconnect=True)
        await request.body()

        with pytest.raises(Cancelled):
            await asyncio.wait_for(
                dispatcher.run(make_template(), {"name": "Ada"}, is_disconnected=request.is_disconnected),
                timeout=3,
            )
        assert fake_provider.cancelled is True
        assert store.metrics[0].outcome == CallOutcome.CANCELLED

    @pytest.mark.asyncio
    async def test_zero_timeout_is_not_the_default(self, dispatcher, store):
        with pytest.raises(ProviderTimeout):
            await dispatcher.run(make_template(), {"name": "Ada"}, timeout=0)
        assert store.metrics[0].outcome == CallOutcome.TIMEOUT

    @pytest.mark.asyncio
    async def test_metric_failure_does_not_fail_execution(self, dispatcher, store):
        store.fail_metrics = True
        result = await dispatcher.run(make_template(), {"name": "Ada"})
        assert result.message == "Hi Ada"
        assert store.metrics == []

    @pytest.mark.asyncio
    async def test_execute_without_recording(self, dispatcher, store):
        rows = (MessageRow(role="user", prompt="ping"),)
        result = await dispatcher.execute(1, rows, (), {}, record=False)
        assert result.prompt_id is None
        assert store.metrics == []
