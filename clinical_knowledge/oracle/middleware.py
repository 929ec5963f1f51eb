"""Observability middleware for oracle agent calls.

Logs which oracle task ran, on which deployment, how long it took and how many
tokens it used. Nothing is streamed to callers.
"""

import logging
import time

from agent_framework import agent_middleware

logger = logging.getLogger(__name__)


def _extract_model_name(agent) -> str | None:
    """Extract model/deployment name from agent's chat client."""
    chat_client = getattr(agent, "chat_client", None)
    return getattr(chat_client, "deployment_name", None)


def _extract_usage(result) -> dict | None:
    """Extract token usage from result's usage_details."""
    usage = getattr(result, "usage_details", None)
    if not usage:
        return None
    return {
        "input_tokens": getattr(usage, "input_token_count", None),
        "output_tokens": getattr(usage, "output_token_count", None),
        "total_tokens": getattr(usage, "total_token_count", None),
    }


@agent_middleware
async def observability_agent_middleware(context, next):  # type: ignore
    """Log oracle invocation and completion with timing and token usage."""
    agent_name = context.agent.name
    model_name = _extract_model_name(context.agent)
    start_time = time.monotonic()

    logger.debug(f"Oracle task {agent_name} invoked on {model_name}")
    try:
        await next(context)
    finally:
        execution_time_ms = int((time.monotonic() - start_time) * 1000)
        usage = _extract_usage(context.result)
        logger.info(
            f"Oracle task {agent_name} finished on {model_name} "
            f"in {execution_time_ms}ms, usage={usage}"
        )
