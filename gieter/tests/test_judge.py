"""
Tests for the listing judge and the LLM client.
The provider is always mocked.
"""
import json
from unittest.mock import MagicMock, Mock, patch

import pytest
from pydantic import ValidationError

from gieter.ai.judge import JudgmentResponse, ListingJudge, build_digest
from gieter.ai.llm_client import LLMClient
from gieter.config import JudgeConfig
from gieter.errors import JudgmentError
from gieter.models.listing import Review, ReviewCriteria


def payload(score=7, **overrides) -> dict:
    data = {
        "outdoorChillPotential": {"score": score, "reason": "Large garden."},
        "groupComfort": {"score": score, "reason": "Four doubles."},
        "locationVibe": {"score": score, "reason": "Isolated farm."},
        "miscellaneous": {"score": score, "reason": "Nothing notable."},
    }
    data.update(overrides)
    return data


def provider(*responses) -> Mock:
    """LLM client returning queued payloads, validated like the real client."""
    queue = list(responses)

    def call_with_schema(system_prompt, user_prompt, response_model):
        return response_model.model_validate(queue.pop(0))

    client = Mock(spec=LLMClient)
    client.call_with_schema.side_effect = call_with_schema
    return client


class TestJudgmentResponse:

    def test_valid_payload(self):
        judgment = JudgmentResponse.model_validate(payload(8)).to_judgment()
        assert judgment.group_comfort.score == 8.0
        assert judgment.location_vibe.reason == "Isolated farm."

    def test_extra_key_rejected(self):
        with pytest.raises(ValidationError):
            JudgmentResponse.model_validate(payload(extraComponent={"score": 5, "reason": "x"}))

    def test_missing_component_rejected(self):
        data = payload()
        del data["miscellaneous"]
        with pytest.raises(ValidationError):
            JudgmentResponse.model_validate(data)

    def test_string_score_rejected(self):
        with pytest.raises(ValidationError):
            JudgmentResponse.model_validate(payload(groupComfort={"score": "8", "reason": "x"}))

    def test_scores_clamped(self):
        data = payload(outdoorChillPotential={"score": 14, "reason": "x"}, locationVibe={"score": -2, "reason": "y"})
        judgment = JudgmentResponse.model_validate(data).to_judgment()
        assert judgment.outdoor_chill_potential.score == 10.0
        assert judgment.location_vibe.score == 1.0


class TestListingJudge:
    """Tests for bounded retries on malformed judgments."""

    def test_valid_first_attempt(self, make_listing):
        client = provider(payload(6))
        judgment = ListingJudge(client).judge(make_listing())

        assert judgment.miscellaneous.score == 6.0
        assert client.call_with_schema.call_count == 1

    def test_invalid_then_valid_is_retried(self, make_listing):
        client = provider(payload(extra={}), payload(9))
        judgment = ListingJudge(client).judge(make_listing())

        assert judgment.group_comfort.score == 9.0
        assert client.call_with_schema.call_count == 2

    def test_gives_up_after_max_attempts(self, make_listing):
        client = provider(*[{"nope": True}] * 5)

        with pytest.raises(JudgmentError) as exc_info:
            ListingJudge(client, max_attempts=3).judge(make_listing(ref="H45H026322"))

        assert exc_info.value.ref == "H45H026322"
        assert client.call_with_schema.call_count == 3

    def test_invalid_json_is_retried(self, make_listing):
        client = Mock(spec=LLMClient)
        client.call_with_schema.side_effect = [
            json.JSONDecodeError("Expecting value", "", 0),
            JudgmentResponse.model_validate(payload(4)),
        ]
        assert ListingJudge(client).judge(make_listing()).location_vibe.score == 4.0

    def test_transport_errors_propagate(self, make_listing):
        client = Mock(spec=LLMClient)
        client.call_with_schema.side_effect = ConnectionError("down")

        with pytest.raises(ConnectionError):
            ListingJudge(client).judge(make_listing())
        assert client.call_with_schema.call_count == 1


class TestDigest:

    def test_photos_excluded_reviews_included(self, make_listing):
        listing = make_listing(
            photos=["https://example.com/1.jpg"],
            reviews=[Review(rating=4, title="Great", body="Quiet spot", criteria=ReviewCriteria(comfort=5))],
            distance_km=640.0,
        )
        digest = json.loads(build_digest(listing))

        assert "photos" not in digest
        assert digest["distanceKm"] == 640.0
        assert digest["reviews"] == [
            {"rating": 4.0, "title": "Great", "body": "Quiet spot", "criteria": {"comfort": 5.0}}
        ]


class TestLLMClient:

    @pytest.fixture
    def config(self) -> JudgeConfig:
        return JudgeConfig(api_key="test-key", model="test/model")

    def test_unconfigured_without_key(self):
        client = LLMClient(JudgeConfig(api_key=""))
        assert client.client is None
        with pytest.raises(RuntimeError):
            client.call_with_schema("s", "u", JudgmentResponse)

    def test_json_mode_and_validation(self, config):
        with patch("gieter.ai.llm_client.OpenAI") as openai_cls:
            completion = MagicMock()
            completion.choices[0].message.content = json.dumps(payload(5))
            openai_cls.return_value.chat.completions.create.return_value = completion

            result = LLMClient(config).call_with_schema("system", "user", JudgmentResponse)

        assert result.group_comfort.score == 5
        assert openai_cls.call_args.kwargs["base_url"] == config.base_url
        kwargs = openai_cls.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_invalid_json_raises(self, config):
        with patch("gieter.ai.llm_client.OpenAI") as openai_cls:
            completion = MagicMock()
            completion.choices[0].message.content = "not json"
            openai_cls.return_value.chat.completions.create.return_value = completion

            with pytest.raises(json.JSONDecodeError):
                LLMClient(config).call_with_schema("system", "user", JudgmentResponse)
