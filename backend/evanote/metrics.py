"""
Usage accounting: token estimation and cost derivation.

Costs are stored as whole cents, always rounded up.
"""
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from loguru import logger

# Cents per 1000 tokens (input, output), keyed by deployment name.
LLM_PRICES_CENTS_PER_1K = {
    "gpt-4o-mini": (0.015, 0.06),
    "gpt-4o-mini-eu": (0.015, 0.06),
    "gpt-4o": (0.25, 1.0),
    "gpt-4o-eu": (0.25, 1.0),
}

# Cents per audio minute, keyed by Deepgram model.
STT_PRICES_CENTS_PER_MINUTE = {
    "nova-3": 0.43,
    "nova-2": 0.43,
    "whisper-large": 0.48,
}


@dataclass
class UsageMetrics:
    visit_id: Any
    stt_seconds: int = 0
    stt_cost_cents: int = 0
    stt_model: Optional[str] = None
    llm_tokens_in: int = 0
    llm_tokens_out: int = 0
    llm_cost_cents: int = 0
    llm_model: Optional[str] = None

    @property
    def total_cost_cents(self) -> int:
        return self.stt_cost_cents + self.llm_cost_cents

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def estimate_token_count(text: str) -> int:
    """Rough token estimate: one token per four characters, rounded up."""
    return math.ceil(len(text or "") / 4)


def _model_key(model_id: Optional[str]) -> str:
    # "azure:gpt-4o-mini-eu" -> "gpt-4o-mini-eu"
    return (model_id or "").split(":", 1)[-1]


def calculate_llm_cost_cents(model_id: Optional[str], tokens_in: int, tokens_out: int) -> int:
    if not tokens_in and not tokens_out:
        return 0
    prices = LLM_PRICES_CENTS_PER_1K.get(_model_key(model_id))
    if prices is None:
        logger.warning(f"No LLM price known for model {model_id}, recording cost 0")
        return 0
    price_in, price_out = prices
    return math.ceil(tokens_in / 1000 * price_in + tokens_out / 1000 * price_out)


def calculate_stt_cost_cents(model_id: Optional[str], seconds: int) -> int:
    if not seconds:
        return 0
    price = STT_PRICES_CENTS_PER_MINUTE.get(_model_key(model_id))
    if price is None:
        logger.warning(f"No STT price known for model {model_id}, recording cost 0")
        return 0
    return math.ceil(seconds / 60 * price)


def create_usage_metrics(
    visit_id: Any,
    llm_model: Optional[str] = None,
    tokens_in: int = 0,
    tokens_out: int = 0,
    stt_model: Optional[str] = None,
    stt_seconds: float = 0,
) -> UsageMetrics:
    """
    Build a usage row for one pipeline run or one transcription.

    Args:
        visit_id: Visit the usage belongs to
        llm_model: Model identifier of the generation, e.g. "azure:gpt-4o-mini-eu"
        tokens_in: Prompt tokens
        tokens_out: Completion tokens
        stt_model: Speech-to-text model, e.g. "deepgram:nova-3"
        stt_seconds: Audio duration; rounded to whole seconds

    Returns:
        UsageMetrics with derived costs
    """
    seconds = int(round(stt_seconds or 0))
    return UsageMetrics(
        visit_id=visit_id,
        stt_seconds=seconds,
        stt_cost_cents=calculate_stt_cost_cents(stt_model, seconds),
        stt_model=stt_model,
        llm_tokens_in=tokens_in,
        llm_tokens_out=tokens_out,
        llm_cost_cents=calculate_llm_cost_cents(llm_model, tokens_in, tokens_out),
        llm_model=llm_model,
    )
