"""Tests for aelora.llm.generate."""

from unittest.mock import patch

import pytest
from conftest import FakeProvider

from aelora.errors import BackendError, BackendTimeoutError
from aelora.llm.generate import llm_generate, llm_stream
from aelora.llm.providers.base import LLMResponse


class TestLLMGenerate:
    @pytest.mark.asyncio
    async def test_returns_response(self):
        provider = FakeProvider([LLMResponse(content="hi")])
        response = await llm_generate(provider, [{"role": "user", "content": "x"}], "m")
        assert response.content == "hi"

    @pytest.mark.asyncio
    async def test_empty_tools_passed_as_none(self):
        provider = FakeProvider([LLMResponse(content="hi")])
        await llm_generate(provider, [], "m", tools=[])
        assert provider.requests[0]["tools"] is None

    @pytest.mark.asyncio
    async def test_wraps_provider_exceptions(self):
        provider = FakeProvider([ValueError("bad payload")])
        with pytest.raises(BackendError) as exc_info:
            await llm_generate(provider, [], "m")
        assert exc_info.value.provider == "fake"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_backend_errors_pass_through(self):
        original = BackendError("already wrapped", provider="fake")
        provider = FakeProvider([original])
        with pytest.raises(BackendError) as exc_info:
            await llm_generate(provider, [], "m")
        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = FakeProvider([LLMResponse(content="late")], delay=0.5)
        with pytest.raises(BackendTimeoutError) as exc_info:
            await llm_generate(provider, [], "m", timeout=0.01)
        assert exc_info.value.timeout == 0.01
        assert "did not respond within 0.01s" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_span_marked_on_error(self, mock_tracer):
        provider = FakeProvider([RuntimeError("nope")])
        with patch("aelora.llm.generate.get_tracer", return_value=mock_tracer):
            with pytest.raises(BackendError):
                await llm_generate(provider, [], "m")

        span = mock_tracer.start_as_current_span.return_value
        assert mock_tracer.start_as_current_span.call_args.kwargs["name"] == "llm.completion"
        span.record_exception.assert_called_once()
        span.set_status.assert_called_once()


class TestLLMStream:
    @pytest.mark.asyncio
    async def test_collects_stream(self):
        provider = FakeProvider([[{"type": "text_delta", "data": {"content": "yo"}}]])
        message = await llm_stream(provider, [], "m")
        assert message.content == "yo"

    @pytest.mark.asyncio
    async def test_stream_exception_is_wrapped(self):
        provider = FakeProvider([OSError("socket closed")])
        with pytest.raises(BackendError, match="socket closed"):
            await llm_stream(provider, [], "m")
