"""
Calorie estimation client.

The estimation service is a collaborator that either returns a whole number or
fails. Failures never stop a log entry from being written: the module-level
helpers catch EstimationError and fall back to fixed defaults.
"""

import math
import re
from typing import Optional

import requests

from fastlog.core.errors import EstimationError, UnrecognizedSizeFormat
from fastlog.core.units import VOLUME, WEIGHT, convert_to_preferred_system, format_size, parse_size
from fastlog.infra.log_utils import log_message

DEFAULT_MEAL_CALORIES = 200
DEFAULT_DRINK_CALORIES = 50
FALLBACK_CALORIES_PER_MINUTE = 5


class OpenAIEstimator:
    """A client that asks a chat-completion endpoint for calorie numbers."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o",
                 api_url: str = "https://api.openai.com/v1/chat/completions", timeout: int = 30):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout

    def _ask(self, system: str, prompt: str) -> str:
        if not self.api_key:
            raise EstimationError('OpenAI API key not found. Run "fastlog config openai-key <key>".')
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": 10,
            "temperature": 0.1,
        }
        try:
            r = requests.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
            r.raise_for_status()
            return r.json()["choices"][0]["message"]["content"].strip()
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            raise EstimationError(f"Estimation request failed: {e}") from e

    @staticmethod
    def _to_int(reply: str, minimum: int = 0) -> int:
        match = re.search(r"\d+", reply.replace(",", ""))
        if not match:
            raise EstimationError(f"Could not parse a calorie number from {reply!r}")
        value = int(match.group())
        if value < minimum:
            raise EstimationError(f"Estimate {value} is below {minimum} (reply {reply!r})")
        return value

    def estimate_food(self, description: str, kind: str, portion: Optional[str], unit_system: str) -> int:
        prompt = f'Estimate the calories for this {kind}: "{description}"'
        if portion:
            prompt += f' with size/portion: "{portion}"'
        prompt += (
            f". Use {unit_system} measurements for context. "
            "Respond with only the number, no additional text or explanation."
        )
        system = (
            f"You are a nutrition expert that provides accurate calorie estimates using {unit_system} "
            "measurements. Always respond with only a number representing the estimated calories."
        )
        return self._to_int(self._ask(system, prompt))

    def estimate_exercise(self, description: str, duration_minutes: float, weight: Optional[str]) -> int:
        prompt = f"Estimate calories burned for this exercise:\nExercise: {description}\nDuration: {duration_minutes} minutes"
        if weight:
            prompt += f"\nPerson's weight: {weight}"
        prompt += "\n\nPlease provide only a number representing the estimated calories burned."
        system = "You are a fitness expert who accurately estimates calories burned during exercise. Respond with only a number."
        return self._to_int(self._ask(system, prompt), minimum=1)


def describe_portion(size: Optional[str], kind: str, unit_system: str) -> Optional[str]:
    """Portion text for the prompt, converted to the user's unit system when parseable."""
    if not size:
        return None
    try:
        parsed = parse_size(size, VOLUME if kind == "drink" else WEIGHT, unit_system)
    except UnrecognizedSizeFormat:
        return size
    converted = convert_to_preferred_system(parsed, unit_system)
    return format_size(converted.value, converted.unit)


def estimate_calories(
    estimator: OpenAIEstimator,
    description: str,
    kind: str = "meal",
    size: Optional[str] = None,
    unit_system: str = "imperial",
) -> int:
    try:
        return estimator.estimate_food(description, kind, describe_portion(size, kind, unit_system), unit_system)
    except EstimationError as e:
        fallback = DEFAULT_DRINK_CALORIES if kind == "drink" else DEFAULT_MEAL_CALORIES
        log_message(f'[estimator] Estimating "{description}" failed: {e}. Using {fallback}.', "WARN")
        return fallback


def estimate_exercise_calories(
    estimator: OpenAIEstimator, description: str, duration_minutes: float, weight: Optional[str] = None
) -> int:
    try:
        return estimator.estimate_exercise(description, duration_minutes, weight)
    except EstimationError as e:
        fallback = int(math.floor(duration_minutes * FALLBACK_CALORIES_PER_MINUTE + 0.5))
        log_message(f'[estimator] Estimating "{description}" failed: {e}. Using {fallback}.', "WARN")
        return fallback
