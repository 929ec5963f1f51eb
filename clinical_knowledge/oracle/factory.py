"""Oracle agent factory supporting both env settings and registry modes.

Mode 1 (registry=None): Use env settings (AzOpenAIEnvSettings) for local dev
Mode 2 (registry provided): Use ModelRegistry for cloud deployment
"""

from typing import Callable, Dict, Optional

from agent_framework import ChatAgent
from agent_framework.azure import AzureOpenAIChatClient

from .middleware import observability_agent_middleware
from .model_registry import AzOpenAIEnvSettings, ModelRegistry, model_for_task
from .prompts import TASK_PROMPTS, TaskPrompt


def create_oracle_agent(
    prompt: TaskPrompt,
    registry: Optional[ModelRegistry] = None,
    model_name: Optional[str] = None,
) -> ChatAgent:
    """Create a ChatAgent that answers one oracle task.

    Args:
        prompt: Task name, description and system instructions
        registry: ModelRegistry for cloud mode, None for env settings
        model_name: Model to use (required when registry provided)

    Returns:
        Configured ChatAgent instance

    Raises:
        ValueError: If registry is provided but model_name is None
    """
    if registry is None:
        env = AzOpenAIEnvSettings()
        api_key = env.azure_openai_api_key
        endpoint = env.azure_openai_endpoint
        deployment_name = env.azure_openai_deployment_name
    else:
        if model_name is None:
            raise ValueError("model_name is required when registry is provided")
        resolved = registry.get(model_name)
        api_key = resolved.api_key
        endpoint = resolved.endpoint
        deployment_name = resolved.deployment_name

    chat_client = AzureOpenAIChatClient(
        api_key=api_key,
        endpoint=endpoint,
        deployment_name=deployment_name,
    )

    return ChatAgent(
        name=prompt.name,
        description=prompt.description,
        instructions=prompt.instructions,
        chat_client=chat_client,
        middleware=[observability_agent_middleware],
    )


def build_agent_provider(
    registry: Optional[ModelRegistry] = None,
    default_model: Optional[str] = None,
) -> Callable[[str], ChatAgent]:
    """Build the task -> agent resolver the OracleClient runs against.

    Agents are created lazily, once per task, and reused across requests.
    They hold no conversation state: every run gets the full prompt.

    Usage:
        provider = build_agent_provider(registry, settings.oracle_model)
        oracle = OracleClient(provider, timeout_seconds=30)
    """
    agents: Dict[str, ChatAgent] = {}

    def provide(task: str) -> ChatAgent:
        if task not in agents:
            model_name = model_for_task(task, default_model) if registry else None
            agents[task] = create_oracle_agent(TASK_PROMPTS[task], registry, model_name)
        return agents[task]

    return provide
