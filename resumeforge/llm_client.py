from __future__ import annotations
import io
import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)


def strip_fences(content: str) -> str:
    """Remove markdown code fences some models wrap around their output."""
    cleaned = (content or "").strip()
    if cleaned.startswith("```"):
        # remove first fence line (```json, ```latex or ```)
        cleaned = "\n".join(cleaned.splitlines()[1:])
    if cleaned.endswith("```"):
        cleaned = "\n".join(cleaned.splitlines()[:-1])
    return cleaned.strip()


class LLMClient:
    """Thin wrapper around the OpenAI Responses and Files APIs.

    One instance is built at app start and shared by every request. Calls
    are fire-once: no retries, failures surface to the caller or come back
    as ``None`` for unparsable output.
    """

    def __init__(self, client: OpenAI, model: str = "gpt-4.1-mini"):
        self.client = client
        self.model = model

    @classmethod
    def from_config(cls, config) -> "LLMClient":
        client = OpenAI(api_key=config.get("OPENAI_API_KEY") or None,
                        timeout=config.get("OPENAI_TIMEOUT"))
        return cls(client, model=config.get("OPENAI_MODEL", "gpt-4.1-mini"))

    # ---- files ----
    def upload_file(self, data: bytes, filename: str) -> str:
        buf = io.BytesIO(data)
        f = self.client.files.create(file=(filename, buf), purpose="user_data")
        logger.info("OpenAI file created with id %s", f.id)
        return f.id

    def delete_file(self, file_id: str) -> bool:
        try:
            self.client.files.delete(file_id)
            logger.info("Deleted OpenAI file %s", file_id)
            return True
        except OpenAIError as e:
            logger.error("Failed to delete OpenAI file %s: %s", file_id, e)
            return False

    # ---- responses ----
    def _create(self, parts: List[Dict[str, Any]], **kwargs):
        return self.client.responses.create(
            model=self.model,
            input=[{"role": "user", "content": parts}],
            **kwargs,
        )

    def complete_text(self, parts: List[Dict[str, Any]]) -> Optional[str]:
        response = self._create(parts)
        text = getattr(response, "output_text", None)
        if not text:
            logger.error("Model returned no output")
            return None
        return strip_fences(text)

    def complete_json(
        self,
        parts: List[Dict[str, Any]],
        name: str,
        schema: Optional[Dict[str, Any]] = None,
        strict: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """Ask for JSON, constrained by ``schema`` when given.

        Returns the parsed object, or None when the model produced nothing
        or something that is not a JSON object.
        """
        kwargs: Dict[str, Any] = {}
        if schema is not None:
            kwargs["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": name,
                    "schema": schema,
                    "strict": strict,
                }
            }
        response = self._create(parts, **kwargs)
        content = getattr(response, "output_text", None)
        if not content:
            logger.error("[%s] model returned no output", name)
            return None
        logger.debug("[%s] raw response: %s", name, content[:500])

        cleaned = strip_fences(content)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            # Some models append commentary after JSON. Try to cut at last closing brace.
            last_brace = cleaned.rfind("}")
            try:
                data = json.loads(cleaned[: last_brace + 1]) if last_brace != -1 else None
            except json.JSONDecodeError:
                data = None
            if data is None:
                logger.error("[%s] JSON parse failed: %s; raw message: %s", name, e, content)
                return None
        if not isinstance(data, dict):
            logger.error("[%s] expected a JSON object, got %s", name, type(data).__name__)
            return None
        return data
