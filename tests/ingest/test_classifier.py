"""Tests for AI genre classification."""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from ingest.classifier import GenreClassifier, build_prompt, parse_response
from ingest.clients.openrouter import OpenRouterClient
from ingest.errors import TransientServiceError
from ingest.taxonomy import PRIMARY_GENRES, SUB_GENRES


def _chat_response(content, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = {"choices": [{"message": {"content": content}}]}
    return response


class TestBuildPrompt:
    """Tests for the classification prompt."""

    def test_includes_all_fields(self):
        """Test title, author, year and description are in the prompt."""
        prompt = build_prompt("The Prince", "Machiavelli", 1513, "On princely rule.")

        assert "Title: The Prince" in prompt
        assert "Author: Machiavelli" in prompt
        assert "Year: 1513" in prompt
        assert "Description: On princely rule." in prompt
        assert all(genre in prompt for genre in PRIMARY_GENRES)
        assert all(subgenre in prompt for subgenre in SUB_GENRES)

    def test_placeholders_for_missing_fields(self):
        """Test missing metadata is substituted."""
        prompt = build_prompt(None, "", None, None)

        assert "Title: Unknown" in prompt
        assert "Author: Unknown" in prompt
        assert "Year: Unknown" in prompt
        assert "Description: No description available" in prompt

    def test_description_truncated(self):
        """Test long descriptions are cut to 500 characters."""
        prompt = build_prompt("T", "A", 1900, "x" * 600 + "END")

        assert "x" * 500 in prompt
        assert "x" * 501 not in prompt
        assert "END" not in prompt


class TestParseResponse:
    """Tests for lenient reply parsing."""

    def test_json_wrapped_in_prose(self):
        """Test the JSON object is extracted from surrounding text."""
        result = parse_response(
            'Here you go:\n{"genres": ["philosophy", "ETHICS"], "subgenre": "ancient"}\nThanks!'
        )
        assert result.genres == ["Philosophy", "Ethics"]
        assert result.subgenre == "Ancient"

    def test_bounds_enforced(self):
        """Test unknown genres dropped, duplicates removed, max three kept."""
        reply = json.dumps(
            {
                "genres": ["Poetry", "Romance", "poetry", "Drama", "Literature", "Mythology"],
                "subgenre": "Space Opera",
            }
        )
        result = parse_response(reply)

        assert result.genres == ["Poetry", "Drama", "Literature"]
        assert result.subgenre is None

    @pytest.mark.parametrize(
        "reply",
        [
            None,
            "",
            "no json here",
            "{not valid json}",
            '{"genres": "Philosophy"}',
            '{"genres": ["Cooking", "Gardening"]}',
            '["Philosophy"]',
        ],
    )
    def test_unusable_replies(self, reply):
        """Test malformed or empty replies yield None."""
        assert parse_response(reply) is None


class TestGenreClassifier:
    """Tests for GenreClassifier.classify."""

    @pytest.fixture
    def classifier(self):
        return GenreClassifier(
            client=OpenRouterClient("test-key"), model="test-model", timeout=2, enabled=True
        )

    @patch("requests.Session.post")
    def test_successful_classification(self, mock_post, classifier):
        """Test a valid reply is returned and the request is bounded."""
        mock_post.return_value = _chat_response('{"genres": ["History"], "subgenre": null}')

        result = classifier.classify("The Histories", "Herodotus", None, None)

        assert result.genres == ["History"]
        assert result.subgenre is None

        payload = mock_post.call_args.kwargs["json"]
        assert payload["model"] == "test-model"
        assert payload["max_tokens"] == 150
        assert payload["temperature"] == 0.3
        assert mock_post.call_args.kwargs["timeout"] == 2

    @patch("requests.Session.post")
    def test_timeout_returns_none(self, mock_post, classifier):
        """Test a timeout never propagates."""
        mock_post.side_effect = requests.exceptions.Timeout()
        assert classifier.classify("T", "A") is None

    @patch("requests.Session.post")
    @pytest.mark.parametrize("status_code", [401, 429, 500])
    def test_http_errors_return_none(self, mock_post, status_code, classifier):
        """Test auth, rate limit and server errors yield None."""
        response = _chat_response("")
        response.status_code = status_code
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("boom")
        mock_post.return_value = response

        assert classifier.classify("T", "A") is None

    @patch("requests.Session.post")
    def test_malformed_payload_returns_none(self, mock_post, classifier):
        """Test a response without choices yields None."""
        response = Mock(status_code=200)
        response.json.return_value = {"error": "nope"}
        mock_post.return_value = response

        assert classifier.classify("T", "A") is None

    @patch("requests.Session.post")
    def test_non_text_content_raises_transient_error(self, mock_post):
        """Test message content that is not text is rejected by the client."""
        response = Mock(status_code=200)
        response.json.return_value = {
            "choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}]
        }
        mock_post.return_value = response

        with pytest.raises(TransientServiceError, match="Invalid OpenRouter response structure"):
            OpenRouterClient("test-key").complete("prompt", model="m", max_tokens=10, timeout=1)

    @patch("requests.Session.post")
    def test_disabled_makes_no_request(self, mock_post):
        """Test disabled classification skips the network."""
        classifier = GenreClassifier(client=OpenRouterClient("k"), enabled=False)

        assert classifier.classify("T", "A") is None
        mock_post.assert_not_called()

    def test_no_api_key_disables(self, monkeypatch):
        """Test a missing key disables classification."""
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        assert GenreClassifier().enabled is False

    def test_classify_candidate_passes_fields(self, make_candidate):
        """Test classify_candidate forwards candidate metadata."""
        client = Mock()
        client.complete.return_value = '{"genres": ["Ethics"]}'
        classifier = GenreClassifier(client=client, model="m", timeout=1, enabled=True)

        result = classifier.classify_candidate(make_candidate(title="Meditations", year=180))

        prompt = client.complete.call_args.args[0]
        assert "Title: Meditations" in prompt
        assert "Year: 180" in prompt
        assert result.genres == ["Ethics"]

    def test_transient_error_from_client(self):
        """Test TransientServiceError from the client is absorbed."""
        client = Mock()
        client.complete.side_effect = TransientServiceError("down")
        classifier = GenreClassifier(client=client, model="m", timeout=1, enabled=True)

        assert classifier.classify("T", "A") is None
