import pytest
import requests

from fastlog.core import estimator as est
from fastlog.core.errors import EstimationError


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def reply(content: str) -> FakeResponse:
    return FakeResponse({"choices": [{"message": {"content": content}}]})


class Recorder:
    def __init__(self):
        self.response = reply("0")
        self.requests = []


@pytest.fixture
def calls(monkeypatch):
    """Patch requests.post; tests set calls.response before estimating."""
    recorder = Recorder()

    def fake_post(url, headers=None, json=None, timeout=None):
        recorder.requests.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if isinstance(recorder.response, Exception):
            raise recorder.response
        return recorder.response

    monkeypatch.setattr(est.requests, "post", fake_post)
    return recorder


@pytest.fixture
def client():
    return est.OpenAIEstimator("sk-test", model="gpt-4o", api_url="https://llm.example/v1/chat")


def test_food_estimate_parsed_from_reply(client, calls):
    calls.response = reply(" 350 ")
    assert est.estimate_calories(client, "chicken salad", "meal", None, "imperial") == 350

    (request,) = calls.requests
    assert request["url"] == "https://llm.example/v1/chat"
    assert request["headers"]["Authorization"] == "Bearer sk-test"
    assert request["json"]["model"] == "gpt-4o"
    assert '"chicken salad"' in request["json"]["messages"][1]["content"]


def test_portion_converted_to_user_system_in_prompt(client, calls):
    calls.response = reply("about 1,200 calories")
    assert est.estimate_calories(client, "orange juice", "drink", "500ml", "imperial") == 1200
    assert '"16.91 fl oz"' in calls.requests[0]["json"]["messages"][1]["content"]


def test_unparseable_portion_passed_verbatim():
    assert est.describe_portion("a big bowl", "meal", "metric") == "a big bowl"
    assert est.describe_portion(None, "meal", "metric") is None
    assert est.describe_portion("8oz", "meal", "metric") == "226.8 g"


@pytest.mark.parametrize("kind,fallback", [("meal", 200), ("drink", 50)])
def test_food_fallback_on_service_error(client, calls, kind, fallback):
    calls.response = requests.ConnectionError("offline")
    assert est.estimate_calories(client, "something", kind) == fallback


def test_fallback_on_unusable_reply(client, calls):
    calls.response = reply("I cannot say")
    assert est.estimate_calories(client, "mystery stew") == est.DEFAULT_MEAL_CALORIES

    calls.response = FakeResponse({"error": "bad"})
    assert est.estimate_calories(client, "mystery stew", "drink") == est.DEFAULT_DRINK_CALORIES

    calls.response = FakeResponse({}, status=500)
    assert est.estimate_calories(client, "mystery stew") == est.DEFAULT_MEAL_CALORIES


def test_missing_key_never_calls_service(calls):
    no_key = est.OpenAIEstimator(None)
    with pytest.raises(EstimationError, match="API key"):
        no_key.estimate_food("toast", "meal", None, "metric")
    assert est.estimate_calories(no_key, "toast") == 200
    assert calls.requests == []


def test_exercise_estimate_includes_weight(client, calls):
    calls.response = reply("310")
    assert est.estimate_exercise_calories(client, "running", 30, "180 lbs") == 310
    prompt = calls.requests[0]["json"]["messages"][1]["content"]
    assert "Duration: 30 minutes" in prompt
    assert "Person's weight: 180 lbs" in prompt


def test_exercise_fallback_is_five_per_minute(client, calls):
    calls.response = requests.Timeout("slow")
    assert est.estimate_exercise_calories(client, "cycling", 45) == 225
    assert est.estimate_exercise_calories(client, "stretching", 12.5) == 63


def test_fallback_is_logged(client, calls, caplog):
    calls.response = requests.ConnectionError("offline")
    with caplog.at_level("WARNING", logger="fastlog"):
        est.estimate_calories(client, "pizza")
    assert "[estimator]" in caplog.text and "pizza" in caplog.text


@pytest.mark.parametrize("kind", ["drink", "meal"])
def test_zero_calorie_food_reply_is_kept(client, calls, kind):
    calls.response = reply("0")
    assert est.estimate_calories(client, "black coffee", kind) == 0


def test_zero_exercise_reply_falls_back(client, calls):
    calls.response = reply("0")
    assert est.estimate_exercise_calories(client, "stretching", 10) == 50
