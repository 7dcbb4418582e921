"""Mock provider implementation for testing."""

from typing import Any, Dict, List, Optional, Union

from brain_core.llm.base import LLMProvider, LLMRequest, LLMResponse, LLMUsage


class MockProvider(LLMProvider):
    """Scripted LLM provider for testing.

    Responses are returned in order; once the script is exhausted the last
    entry repeats. An entry that is an exception instance is raised instead
    of returned, and ``None`` produces an unsuccessful response.
    """

    def __init__(
        self,
        responses: Optional[List[Union[str, Exception, None]]] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        """Initialize mock provider.

        Args:
            responses: Scripted response contents
            config: Provider configuration
        """
        super().__init__(config)
        self.responses = list(responses or ["Mock response"])
        self.requests: List[LLMRequest] = []

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        scripted = self.responses[index]

        if isinstance(scripted, Exception):
            raise scripted
        if scripted is None:
            return LLMResponse(
                content="",
                model=request.model,
                usage=LLMUsage(),
                success=False,
                error="Mock provider simulated failure",
            )

        prompt_tokens = sum(len(msg.get("content", "").split()) for msg in request.messages)
        completion_tokens = len(scripted.split())
        return LLMResponse(
            content=scripted,
            model=request.model,
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            metadata={"mock_request_id": f"mock_{len(self.requests)}"},
        )

    def get_default_model(self) -> str:
        return self.config.get("model", "mock-model")

    @property
    def last_request(self) -> Optional[LLMRequest]:
        return self.requests[-1] if self.requests else None
