"""
Tests for AI Service - Generative Cross-Check

Tests model selection, toggle-driven prompt construction, screenshot
upload retries and the degradation of the cross-check to an empty
analysis when Gemini fails or returns unusable output.
"""

import json
import os
import pytest
from unittest.mock import MagicMock, patch
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.exceptions import AIServiceError


@pytest.fixture
def mock_genai():
    """Patch the Gemini client with two available models."""
    with patch('services.ai_service.genai') as genai, \
         patch('config.settings.GOOGLE_AI_API_KEY', 'test-google-api-key'):
        newer = MagicMock()
        newer.name = 'models/gemini-2.5-flash'
        flash = MagicMock()
        flash.name = 'models/gemini-2.0-flash'
        genai.list_models.return_value = [newer, flash]

        model = MagicMock()
        response = MagicMock()
        response.text = '{"duplicate_photos": [], "old_stories": []}'
        model.generate_content.return_value = response
        genai.GenerativeModel.return_value = model
        yield genai


@pytest.fixture
def ai_service(mock_genai, monitor_config):
    """Create an AIService with mocked Gemini model."""
    from services.ai_service import AIService
    return AIService(monitor_config)


class TestInitialization:
    """Tests for API configuration and model choice."""

    def test_selects_model_by_preference(self, mock_genai, ai_service):
        """The first preferred model present wins, regardless of list order."""
        kwargs = mock_genai.GenerativeModel.call_args.kwargs
        assert kwargs['model_name'] == 'models/gemini-2.0-flash'
        assert kwargs['generation_config'] == {"temperature": 0.0}
        mock_genai.configure.assert_called_once_with(api_key='test-google-api-key')

    def test_missing_api_key(self, monitor_config):
        """Construction fails without an API key."""
        from services.ai_service import AIService

        with patch('services.ai_service.genai'), patch('config.settings.GOOGLE_AI_API_KEY', None):
            with pytest.raises(ValueError):
                AIService(monitor_config)

    def test_no_models_available(self, mock_genai, monitor_config):
        """Construction fails when the account lists no models."""
        from services.ai_service import AIService
        mock_genai.list_models.return_value = []

        with pytest.raises(ValueError):
            AIService(monitor_config)


class TestBuildPrompt:
    """Tests for the toggle-driven prompt."""

    def test_lists_stories_with_hash_and_date(self, ai_service, story_factory):
        """Every unique story appears with its hash and visible date."""
        stories = [
            story_factory("Mayor opens new downtown transit hub", hash="h1", date_text="2 hours ago"),
            story_factory("School board delays vote on new calendar", hash=""),
        ]

        prompt = ai_service.build_prompt("https://www.example.com/", stories)

        assert "www.example.com's homepage" in prompt
        assert '1. "Mayor opens new downtown transit hub" | hash: h1 | date: 2 hours ago' in prompt
        assert '2. "School board delays vote on new calendar" | hash: MISSING | date: N/A' in prompt

    def test_default_toggles(self, ai_service):
        """Duplicate photos and old stories are requested; the rest are not."""
        prompt = ai_service.build_prompt("https://www.example.com/", [])

        assert '"duplicate_photos"' in prompt
        assert '"old_stories"' in prompt
        assert "older than 14 days" in prompt
        assert '"people_in_stories"' not in prompt
        assert '"missing_images"' not in prompt

    def test_person_and_missing_image_tasks(self, mock_genai, monitor_config):
        """Enabled person and missing-image analysis add their tasks and keys."""
        from services.ai_service import AIService
        config = monitor_config.with_overrides(
            use_person_analysis=True, use_missing_images=True,
            use_duplicate_photos=False, use_old_stories=False
        )

        prompt = AIService(config).build_prompt("https://www.example.com/", [])

        assert "**Task - People in Photos**" in prompt
        assert '"people_in_stories"' in prompt
        assert '"missing_images"' in prompt
        assert "**Task - Duplicate Photos" not in prompt
        assert '"duplicate_photos": [' not in prompt


class TestUploadScreenshot:
    """Tests for screenshot upload retries."""

    def test_upload_retries_then_succeeds(self, mock_genai, ai_service):
        """A transient upload failure is retried after a delay."""
        uploaded = MagicMock()
        uploaded.name = 'files/abc123'
        mock_genai.upload_file.side_effect = [RuntimeError("503"), uploaded]

        with patch('services.ai_service.time.sleep') as mock_sleep:
            result = ai_service.upload_screenshot("/tmp/shot.png")

        assert result is uploaded
        mock_sleep.assert_called_once_with(1)
        mock_genai.upload_file.assert_called_with(path="/tmp/shot.png", mime_type="image/png")

    def test_upload_gives_up(self, mock_genai, ai_service):
        """AIServiceError is raised when every attempt fails."""
        mock_genai.upload_file.side_effect = RuntimeError("503")

        with patch('services.ai_service.time.sleep'):
            with pytest.raises(AIServiceError):
                ai_service.upload_screenshot("/tmp/shot.png", retries=2)

        assert mock_genai.upload_file.call_count == 3


class TestCrossCheck:
    """Tests for the full cross-check and its degradation."""

    def test_returns_decoded_output(self, ai_service, story_factory, monitor_config):
        """Fenced model output is cleaned, decoded and logged to the log dir."""
        ai_service.model.generate_content.return_value.text = (
            '```json\n{"people_in_stories": [{"headline": "A", "person_hash": "p1"}]}\n```'
        )

        file_id, analysis = ai_service.cross_check("https://www.example.com/", [story_factory()])

        assert file_id is None
        assert analysis == {"people_in_stories": [{"headline": "A", "person_hash": "p1"}]}
        logged = os.listdir(monitor_config.log_dir)
        assert len(logged) == 1
        with open(os.path.join(monitor_config.log_dir, logged[0]), encoding="utf-8") as f:
            assert json.load(f)["url"] == "https://www.example.com/"

    def test_api_failure_degrades_to_empty(self, ai_service, story_factory):
        """A failing API call yields an empty analysis instead of raising."""
        ai_service.model.generate_content.side_effect = RuntimeError("quota exceeded")

        assert ai_service.cross_check("https://www.example.com/", [story_factory()]) == (None, {})

    @pytest.mark.parametrize("text", ["I cannot help with that.", "[1, 2, 3]"])
    def test_unusable_output_degrades_to_empty(self, ai_service, story_factory, text):
        """Non-JSON or non-object output yields an empty analysis."""
        ai_service.model.generate_content.return_value.text = text

        assert ai_service.cross_check("https://www.example.com/", [story_factory()]) == (None, {})

    def test_screenshot_upload_when_enabled(self, mock_genai, story_factory, monitor_config):
        """With screenshot analysis on, the upload reference is returned and sent."""
        from services.ai_service import AIService
        uploaded = MagicMock()
        uploaded.name = 'files/abc123'
        mock_genai.upload_file.return_value = uploaded
        service = AIService(monitor_config.with_overrides(use_screenshot_analysis=True))

        file_id, _ = service.cross_check("https://www.example.com/", [story_factory()], "/tmp/shot.png")

        assert file_id == 'files/abc123'
        contents = service.model.generate_content.call_args.args[0]
        assert contents[0] is uploaded

    def test_failed_upload_still_analyzes(self, mock_genai, story_factory, monitor_config):
        """An upload that never succeeds leaves file_id None but still runs the prompt."""
        from services.ai_service import AIService
        mock_genai.upload_file.side_effect = RuntimeError("503")
        service = AIService(monitor_config.with_overrides(use_screenshot_analysis=True))

        with patch('services.ai_service.time.sleep'):
            file_id, analysis = service.cross_check("https://www.example.com/", [story_factory()], "/tmp/shot.png")

        assert file_id is None
        assert analysis == {"duplicate_photos": [], "old_stories": []}
        assert isinstance(service.model.generate_content.call_args.args[0], str)

    def test_screenshot_not_uploaded_by_default(self, mock_genai, ai_service, story_factory):
        """Screenshot analysis is off by default."""
        ai_service.cross_check("https://www.example.com/", [story_factory()], "/tmp/shot.png")

        mock_genai.upload_file.assert_not_called()

    @pytest.mark.asyncio
    async def test_cross_check_async(self, ai_service, story_factory):
        """The async wrapper returns the same result."""
        result = await ai_service.cross_check_async("https://www.example.com/", [story_factory()])

        assert result == (None, {"duplicate_photos": [], "old_stories": []})
