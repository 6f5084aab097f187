"""
LiteLLM-based provider adapter.

One ``LiteLLMCaller`` is built per request with the requesting user's API
key, so no credential outlives the request that supplied it. It provides:
- ``stream_chat``: the streaming multi-round tool-calling loop
- ``complete_json`` / ``complete_text``: short non-streaming helper calls
- ``generate_image``: one-shot image generation
"""

import asyncio
import json
import logging
import re
import warnings
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

# litellm touches Pydantic attributes deprecated in 2.11 on every streaming
# chunk; the resulting warning spam hides real issues in logs.
from pydantic import PydanticDeprecatedSince211

warnings.filterwarnings("ignore", category=PydanticDeprecatedSince211)

import litellm  # noqa: E402
from litellm import acompletion, aimage_generation  # noqa: E402

from neochat.core.cancellation import race_cancel  # noqa: E402
from neochat.core.metrics_logger import log_metric  # noqa: E402
from neochat.domain.errors import LLMError, OperationAborted  # noqa: E402

from .models import (  # noqa: E402
    LoopState,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    TextDelta,
    ToolCallFinished,
    ToolCallStarted,
    ToolExecutor,
)

logger = logging.getLogger(__name__)

# Configure LiteLLM settings
litellm.drop_params = True  # Drop unsupported params instead of erroring

SUPPORTED_PROVIDERS = ("openai",)
DEFAULT_TEMPERATURE = 0.7
# Reasoning model families reject a temperature override but accept reasoning_effort
_REASONING_MODEL_RE = re.compile(r"^(o[0-9]|gpt-5)")
_STREAM_END = object()


def is_provider_available(provider: Optional[str], api_key: Optional[str]) -> bool:
    """True when ``provider`` is supported and a non-blank key is configured."""
    return provider in SUPPORTED_PROVIDERS and bool(api_key and api_key.strip())


def is_reasoning_model(model: str) -> bool:
    bare = model.split("/", 1)[-1]
    return bool(_REASONING_MODEL_RE.match(bare))


def parse_temperature(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return DEFAULT_TEMPERATURE


def parse_tool_arguments(raw: Optional[str]) -> Dict[str, Any]:
    """Parse a tool-call argument string; anything but a JSON object becomes ``{}``."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Tool call arguments were not valid JSON; using empty arguments")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


async def _next_chunk(iterator) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _STREAM_END


async def _close_stream(response: Any) -> None:
    close = getattr(response, "aclose", None)
    if close is None:
        return
    try:
        await close()
    except Exception as e:  # noqa: BLE001 - stream teardown after abort
        logger.debug("Error closing provider stream: %s", e)


class LiteLLMCaller:
    """Per-request LLM client.

    Args:
        provider: Provider id (only ``openai`` is wired up).
        api_key: The requesting user's key for that provider.
        max_rounds: Upper bound on provider round-trips in ``stream_chat``.
        user_id: Used only for metrics.
    """

    def __init__(
        self,
        provider: str = "openai",
        api_key: Optional[str] = None,
        max_rounds: int = 10,
        user_id: Optional[str] = None,
        image_model: str = "dall-e-3",
    ):
        self.provider = provider
        self.api_key = api_key
        self.max_rounds = max_rounds
        self.user_id = user_id
        self.image_model = image_model

    def _get_litellm_model_name(self, model: str) -> str:
        if "/" in model:
            return model
        return f"{self.provider}/{model}"

    def _get_model_kwargs(
        self,
        model: str,
        temperature: Any = None,
        reasoning_effort: Optional[str] = None,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if is_reasoning_model(model):
            if reasoning_effort:
                kwargs["reasoning_effort"] = reasoning_effort
        else:
            kwargs["temperature"] = parse_temperature(temperature)
        return kwargs

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: Any = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_executor: Optional[ToolExecutor] = None,
        cancel_event: Optional[asyncio.Event] = None,
        reasoning_effort: Optional[str] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Stream a response, running tool calls between rounds.

        Yields TextDelta / ToolCallStarted / ToolCallFinished events followed
        by exactly one StreamCompleted or StreamFailed. Setting
        ``cancel_event`` ends the stream with ``StreamCompleted(aborted=True)``
        carrying the text produced so far.
        """
        running: List[Dict[str, Any]] = list(messages)
        use_tools = bool(tools) and tool_executor is not None
        litellm_model = self._get_litellm_model_name(model)
        model_kwargs = self._get_model_kwargs(model, temperature, reasoning_effort)
        if tools:
            model_kwargs["tools"] = tools
            model_kwargs["tool_choice"] = "auto"

        full_text = ""
        rounds = 0
        state = LoopState.ACCUMULATING

        while state is LoopState.ACCUMULATING:
            if rounds >= self.max_rounds:
                logger.warning("Stopping after %d provider rounds", rounds)
                state = LoopState.ROUND_LIMIT
                break
            rounds += 1

            round_text = ""
            fragments: Dict[int, Dict[str, Any]] = {}
            finish_reason = None
            response = None
            try:
                logger.info(
                    "Streaming LLM round %d: %d messages, %d tools",
                    rounds, len(running), len(tools or []),
                )
                response = await race_cancel(
                    acompletion(model=litellm_model, messages=running, stream=True, **model_kwargs),
                    cancel_event,
                )
                while True:
                    chunk = await race_cancel(_next_chunk(response), cancel_event)
                    if chunk is _STREAM_END:
                        break
                    choices = _field(chunk, "choices") or []
                    if not choices:
                        continue
                    choice = choices[0]
                    finish_reason = _field(choice, "finish_reason") or finish_reason
                    delta = _field(choice, "delta")
                    if not delta:
                        continue

                    content = _field(delta, "content")
                    if content:
                        round_text += content
                        full_text += content
                        yield TextDelta(content)

                    for tc_delta in _field(delta, "tool_calls") or []:
                        self._accumulate_fragment(fragments, tc_delta)
            except OperationAborted:
                state = LoopState.ABORTED
                if response is not None:
                    await _close_stream(response)
                break
            except Exception as exc:
                logger.error("Error in streaming LLM call: %s", exc, exc_info=True)
                state = LoopState.FAILED
                log_metric("error", self.user_id, error_type="llm_stream")
                yield StreamFailed(exc)
                return

            if finish_reason != "tool_calls" or not use_tools or not fragments:
                state = LoopState.DONE
                break

            tool_calls = [fragments[idx] for idx in sorted(fragments)]
            running.append({
                "role": "assistant",
                "content": round_text or None,
                "tool_calls": tool_calls,
            })

            for call in tool_calls:
                name = call["function"]["name"]
                args = parse_tool_arguments(call["function"]["arguments"])
                yield ToolCallStarted(name, args)
                try:
                    result = await race_cancel(tool_executor(name, args), cancel_event)
                except OperationAborted:
                    state = LoopState.ABORTED
                    break
                except Exception as exc:
                    logger.warning("Tool %s raised: %s", name, exc, exc_info=True)
                    result = f"Error: {exc}"
                yield ToolCallFinished(name, result)
                running.append({"role": "tool", "tool_call_id": call["id"], "content": result})

        log_metric("llm_call", self.user_id, model=model, message_count=len(messages), rounds=rounds, state=state.value)
        yield StreamCompleted(full_text, aborted=state is LoopState.ABORTED, rounds=rounds)

    @staticmethod
    def _accumulate_fragment(fragments: Dict[int, Dict[str, Any]], tc_delta: Any) -> None:
        """Merge one streamed tool-call fragment into the per-index accumulator."""
        idx = _field(tc_delta, "index")
        if idx is None:
            idx = 0
        entry = fragments.get(idx)
        if entry is None:
            entry = {
                "id": f"call_{idx}",
                "type": "function",
                "function": {"name": "", "arguments": ""},
            }
            fragments[idx] = entry
        call_id = _field(tc_delta, "id")
        if call_id:
            entry["id"] = call_id
        function = _field(tc_delta, "function")
        if function:
            name = _field(function, "name")
            if name:
                entry["function"]["name"] += name
            arguments = _field(function, "arguments")
            if arguments:
                entry["function"]["arguments"] += arguments

    async def _complete(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        cancel_event: Optional[asyncio.Event] = None,
        **extra: Any,
    ) -> str:
        kwargs = self._get_model_kwargs(model)
        kwargs.update(extra)
        try:
            response = await race_cancel(
                acompletion(model=self._get_litellm_model_name(model), messages=messages, **kwargs),
                cancel_event,
            )
        except OperationAborted:
            raise
        except Exception as exc:
            logger.error("Error in LLM call: %s", exc, exc_info=True)
            raise LLMError(f"Failed to call LLM: {exc}") from exc

        log_metric("llm_call", self.user_id, model=model, message_count=len(messages))
        choices = _field(response, "choices") or []
        if not choices:
            return ""
        return _field(_field(choices[0], "message"), "content") or ""

    async def complete_text(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        return (await self._complete(messages, model, cancel_event)).strip()

    async def complete_json(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """Call the model in JSON mode and return the parsed body.

        Raises:
            LLMError: the call failed or the reply was not valid JSON.
            OperationAborted: ``cancel_event`` fired first.
        """
        content = await self._complete(
            messages, model, cancel_event, response_format={"type": "json_object"}
        )
        try:
            return json.loads(content or "{}")
        except ValueError as exc:
            raise LLMError(f"LLM returned invalid JSON: {exc}") from exc

    async def generate_image(self, prompt: str, size: str, quality: str) -> Tuple[Optional[str], Optional[str]]:
        """Generate one image.

        Returns:
            (base64 PNG payload or None, revised prompt or None)
        """
        response = await aimage_generation(
            model=self.image_model,
            prompt=prompt,
            n=1,
            size=size,
            quality=quality,
            response_format="b64_json",
            api_key=self.api_key,
        )
        log_metric("image_generation", self.user_id, model=self.image_model, size=size, quality=quality)
        data = _field(response, "data") or []
        if not data:
            return None, None
        return _field(data[0], "b64_json"), _field(data[0], "revised_prompt")
