"""Advisory queries against an external LLM service.

The register hands the model a detached, minimal snapshot of the portfolio
plus a free-text question and gets prose back. Every failure (missing
credential, provider error, empty response) is turned into a human-readable
message; nothing is raised to the caller and nothing is retried.
"""

import json
import logging
from typing import Iterable, Optional

from pydantic_ai import Agent, ModelSettings
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider

from .config import AdvisoryConfig, get_config
from .schema import PortfolioSnapshot

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = (
    "**Configuration Error**: Please provide a valid API key to continue."
)
FAILURE_MESSAGE = (
    "**Analysis Failed**: Unable to reach the AI service. "
    "Please verify your API key and connection."
)
EMPTY_MESSAGE = "No insights generated."

PROMPT_TEMPLATE = """You are an Enterprise Architect analyzing an application portfolio.
Here is the raw JSON data of the current portfolio:
{portfolio}

The user asks: "{question}"

Provide a concise, executive summary answer using the data provided.
Focus on strategic recommendations (Invest, Migrate, Tolerate, Eliminate).
Format with markdown. Use bolding for key app names.
"""

# Model is supplied per run, so one agent serves every credential.
advisor_agent = Agent(name="Portfolio Advisor", output_type=str, retries=0)


def build_prompt(snapshot: Iterable[PortfolioSnapshot], question: str) -> str:
    """Render the advisory prompt for a snapshot and question."""
    portfolio = json.dumps([s.model_dump(mode="json") for s in snapshot])
    return PROMPT_TEMPLATE.format(portfolio=portfolio, question=question)


def _build_model(credential: str, settings: AdvisoryConfig) -> Model:
    provider = GoogleProvider(api_key=credential)
    return GoogleModel(settings.model, provider=provider)


def ask(
    snapshot: Iterable[PortfolioSnapshot],
    question: str,
    credential: Optional[str],
    settings: Optional[AdvisoryConfig] = None,
) -> str:
    """Ask the advisory model a question about the portfolio.

    Args:
        snapshot: Minimal portfolio projection (see PortfolioStore.snapshot).
        question: Free-text question.
        credential: API key for the service.
        settings: Model name and timeout; defaults to the loaded config.

    Returns:
        The model's answer, or a user-facing error message.
    """
    if not credential:
        return MISSING_CREDENTIAL_MESSAGE

    settings = settings or get_config().advisory
    prompt = build_prompt(list(snapshot), question)

    try:
        result = advisor_agent.run_sync(
            prompt,
            model=_build_model(credential, settings),
            model_settings=ModelSettings(timeout=settings.timeout_seconds),
        )
    except Exception as e:
        logger.warning("Advisory request to %s failed: %s", settings.model, e)
        return FAILURE_MESSAGE

    answer = (result.output or "").strip()
    return answer or EMPTY_MESSAGE
