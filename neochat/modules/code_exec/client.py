"""Client for the external code execution service.

The service runs untrusted snippets in its own sandbox. This module only
validates the request and relays it:

POST {base_url}/execute  {code, language}  ->  {stdout, stderr, image_b64}
"""

import logging
from typing import Any, Dict, Optional

import httpx

from neochat.domain.errors import ToolError, ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("python", "javascript")
LANGUAGE_ALIASES = {"js": "javascript", "node": "javascript", "py": "python"}


class CodeExecutionError(ToolError):
    """The execution service failed or could not be reached."""
    pass


class CodeExecutionClient:
    """Relays code to the execution service.

    Args:
        base_url: Root URL of the service.
        timeout: Request timeout in seconds.
        max_bytes: Largest accepted snippet, measured in UTF-8 bytes.
        transport: Optional httpx transport for tests.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_bytes: int = 50_000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._transport = transport

    def validate(self, code: Any, language: Any) -> None:
        if not isinstance(code, str) or not code.strip():
            raise ValidationError("code required")
        if len(code.encode("utf-8")) > self.max_bytes:
            raise ValidationError(f"Code too large (max {self.max_bytes // 1000}KB)")
        if language not in SUPPORTED_LANGUAGES:
            raise ValidationError("language must be python or javascript")

    async def execute(self, code: str, language: str) -> Dict[str, Any]:
        """Run ``code`` and return ``{stdout, stderr, image_b64}``.

        Raises:
            ValidationError: the request itself is malformed.
            CodeExecutionError: the service failed or timed out.
        """
        language = LANGUAGE_ALIASES.get(language, language)
        self.validate(code, language)
        url = f"{self.base_url}/execute"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, json={"code": code, "language": language})
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise CodeExecutionError(f"Execution service responded {e.response.status_code}") from e
            except httpx.TimeoutException as e:
                raise CodeExecutionError(f"Execution timed out after {self.timeout:g}s") from e
            except httpx.RequestError as e:
                raise CodeExecutionError(f"Execution service unreachable: {e}") from e
            except ValueError as e:
                raise CodeExecutionError("Execution service returned invalid JSON") from e

        if not isinstance(data, dict):
            raise CodeExecutionError("Execution service returned an unexpected payload")
        logger.info("Code execution finished (%s, %d bytes)", language, len(code))
        return {
            "stdout": data.get("stdout") or "",
            "stderr": data.get("stderr") or "",
            "image_b64": data.get("image_b64"),
        }
