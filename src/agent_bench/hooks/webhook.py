"""Webhook post-evaluation: send the results bundle to an HTTP endpoint."""

from __future__ import annotations

import asyncio
from typing import Any, Literal, Mapping, Optional
from urllib.parse import urlparse

import requests
from pydantic import BaseModel, ConfigDict, Field

from agent_bench import __version__
from agent_bench.core.fanout import PostEvaluationContext
from agent_bench.models.evaluation import (
    HookResult,
    HookStatus,
    PostEvaluationResult,
)
from agent_bench.utils.logging import get_logger

from .base import Hook

logger = get_logger(__name__)

MAX_ATTEMPTS = 3
USER_AGENT = f"agent-bench/{__version__}"


class WebhookConfig(BaseModel):
	model_config = ConfigDict(extra="forbid")

	url: str
	method: Literal["POST", "PUT", "PATCH"] = "POST"
	headers: dict[str, str] = Field(default_factory=dict)
	include_artifacts: bool = False
	retry_on_failure: bool = True
	timeout_ms: int = Field(5000, gt=0)


def is_valid_url(url: str) -> bool:
	parsed = urlparse(url or "")
	return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class WebhookPostEvaluation(Hook):
	"""POSTs (or PUTs/PATCHes) the bundle as JSON, retrying with backoff."""

	name = "webhook"
	description = "Posts evaluation results to an HTTP webhook endpoint"
	config_model = WebhookConfig
	result_model = PostEvaluationResult
	retry_delay_seconds = 1.0

	def check_preconditions(self, context: PostEvaluationContext,
	                        config: Mapping[str, Any]) -> Optional[str]:
		if not is_valid_url(str(config.get("url") or "")):
			return f"Webhook URL invalid: {config.get('url')!r}"
		return None

	def _send(self, config: WebhookConfig, payload: dict[str, Any]) -> None:
		headers = {"User-Agent": USER_AGENT, **config.headers}
		response = requests.request(
		    config.method,
		    config.url,
		    json=payload,
		    headers=headers,
		    timeout=config.timeout_ms / 1000,
		)
		if not 200 <= response.status_code < 300:
			raise requests.HTTPError(
			    f"Webhook returned status {response.status_code}: "
			    f"{response.text[:500]}",
			    response=response,
			)

	async def execute(self, context: PostEvaluationContext,
	                  config: WebhookConfig) -> HookResult:
		payload: dict[str, Any] = {"results": context.bundle.model_dump(
		    mode="json", exclude_none=True)}
		if config.include_artifacts:
			payload["artifacts_path"] = str(context.artifacts_dir)

		attempts = MAX_ATTEMPTS if config.retry_on_failure else 1
		last_error: Optional[requests.RequestException] = None
		for attempt in range(1, attempts + 1):
			try:
				await asyncio.to_thread(self._send, config, payload)
			except requests.RequestException as exc:
				last_error = exc
				if attempt < attempts:
					logger.warning("webhook attempt %d failed, retrying: %s",
					               attempt, exc)
					await asyncio.sleep(self.retry_delay_seconds * attempt)
				continue
			return self.result(
			    HookStatus.SUCCESS,
			    f"Successfully posted results to {config.url}",
			    metadata={
			        "url": config.url,
			        "method": config.method,
			        "attempts": attempt,
			    },
			)
		return self.result(
		    HookStatus.FAILED,
		    f"Failed to post results after {attempts} attempts",
		    metadata={"url": config.url, "attempts": attempts},
		    error=str(last_error) if last_error else "Unknown error",
		)


__all__ = ["WebhookPostEvaluation", "WebhookConfig", "is_valid_url"]
