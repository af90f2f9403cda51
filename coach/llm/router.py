"""
Model router for selecting the model used by each interview feature.
"""
import logging
from coach.core import config

logger = logging.getLogger(__name__)

# Feature -> model mapping
MODEL_ROUTING = {
    "question_generation": config.QUESTION_MODEL,  # Cheap, structured list
    "answer_evaluation": config.EVALUATION_MODEL,  # Cheap, one answer at a time
    "live_review": config.REVIEW_MODEL,  # Stronger model for the holistic review
    "live_interview": config.LIVE_MODEL,  # Native-audio streaming model
}

DEFAULT_MODEL = "gpt-4o-mini"


def get_model_for_feature(feature: str) -> str:
    """
    Get the model for a feature.

    Args:
        feature: Feature name (e.g., "question_generation", "live_review")

    Returns:
        Model identifier string
    """
    model = MODEL_ROUTING.get(feature)
    if model is None:
        logger.warning(f"No model routed for feature '{feature}', using {DEFAULT_MODEL}")
        return DEFAULT_MODEL
    return model
