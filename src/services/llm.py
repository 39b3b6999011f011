import time
import logging
from typing import Dict, Any

from langchain_ollama import ChatOllama
from langchain_core.messages import HumanMessage
import httpx

from core.errors import MalformedResponseError, OperationTimeoutError, UpstreamUnavailableError
from services.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

# Failures worth another attempt; anything else is surfaced immediately
RETRYABLE_ERRORS = (httpx.TransportError, ConnectionError)


class OllamaClient:
    """
    LangChain-based Ollama client with bounded output, per-call timeout and retry.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        temperature: float = 0.5,
        max_tokens: int = 100,
        timeout: float = 60.0,
        retry_policy: RetryPolicy = RetryPolicy(),
    ):
        # ChatOllama uses Ollama's native API, not OpenAI-compatible /v1 endpoint
        if base_url.endswith("/v1"):
            base_url = base_url[:-3]
        elif base_url.endswith("/v1/"):
            base_url = base_url[:-4]

        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.retry_policy = retry_policy

        self.llm = ChatOllama(
            base_url=self.base_url,
            model=model,
            temperature=temperature,
            num_predict=max_tokens,
            num_ctx=4096,
        )

    async def evaluate(self, prompt: str) -> Dict[str, Any]:
        """
        Run a prompt and return the response with metadata.
        """
        start = time.time()

        try:
            response = await call_with_retry(
                lambda: self.llm.ainvoke([HumanMessage(content=prompt)]),
                timeout=self.timeout,
                policy=self.retry_policy,
                retry_on=RETRYABLE_ERRORS,
                operation=f"ollama:{self.model}",
            )
        except OperationTimeoutError:
            raise
        except Exception as e:
            raise UpstreamUnavailableError(
                f"Ollama request failed (base_url={self.base_url}, model={self.model}): {e}"
            ) from e

        latency_ms = int((time.time() - start) * 1000)

        return {
            "raw": response,
            "content": getattr(response, "content", None),
            "latency_ms": latency_ms,
        }

    async def generate(self, prompt: str) -> str:
        """
        Return the generated text, or raise MalformedResponseError if the
        response carries no usable text.
        """
        result = await self.evaluate(prompt)
        content = result["content"]

        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError(
                f"Ollama returned no text content (got {type(content).__name__})"
            )

        logger.debug(f"Generated {len(content)} chars in {result['latency_ms']}ms")
        return content.strip()

