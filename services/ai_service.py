"""
AI Service Module

Optional cross-check of the local analysis using Google's Gemini API.
Builds a prompt from the unique stories and the enabled feature toggles,
optionally uploads the screenshot for vision analysis, and returns the
model's JSON. Disabled by default; its output is only ever merged additively.
"""

import asyncio
import json
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import google.generativeai as genai

from config import settings
from config.monitor_config import MonitorConfig
from data.models import StoryData
from utils.exceptions import AIServiceError
from utils.helpers import clean_json_response
from utils.logger import get_logger, log_ai_interaction

logger = get_logger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a precise JSON generator. Only output valid JSON. Never hallucinate or "
    "modify provided headlines. Use exact headlines from the provided list only."
)


class AIService:
    """Service for the generative cross-check with Google's Gemini API."""

    def __init__(self, config: Optional[MonitorConfig] = None):
        """
        Initialize the AI service with the Gemini API.

        Configures the API key and selects an appropriate model based on availability.
        """
        self.config = config or MonitorConfig.from_settings()

        api_key = settings.GOOGLE_AI_API_KEY
        if not api_key:
            raise ValueError("Missing required GOOGLE_AI_API_KEY")

        genai.configure(api_key=api_key)

        try:
            available_models = [m.name for m in genai.list_models()]

            # Select a model based on preference order
            model_name = None
            for preferred in settings.DEFAULT_AI_MODELS:
                for available in available_models:
                    if preferred in available:
                        model_name = available
                        break
                if model_name:
                    break

            if not model_name and len(available_models) > 0:
                model_name = available_models[0]

            if not model_name:
                raise ValueError("No Gemini models available")

            logger.info(f"Selected AI model: {model_name}")

            self.model = genai.GenerativeModel(
                model_name=model_name,
                system_instruction=SYSTEM_INSTRUCTION,
                generation_config={"temperature": 0.0}
            )

        except Exception as e:
            logger.error(f"Error initializing Gemini AI: {e}")
            raise

    def build_prompt(self, url: str, stories: List[StoryData]) -> str:
        """
        Build the cross-check prompt for one homepage.

        Only the tasks whose toggles are on are described, and the requested
        JSON structure lists only their keys.

        Args:
            url: The monitored homepage
            stories: Unique stories to describe

        Returns:
            str: The prompt text
        """
        hostname = urlparse(url).hostname or url
        config = self.config

        stories_context = ""
        if stories:
            lines = "\n".join(
                f'{i}. "{s.headline}" | hash: {s.hash or "MISSING"} | date: {s.date_text or "N/A"}'
                for i, s in enumerate(stories, 1)
            )
            stories_context = f"\n\nHere are the unique story headlines, their image hashes, and visible dates:\n{lines}"

        prompt = f"""You are analyzing a screenshot of {hostname}'s homepage.

**IMPORTANT RULES**
1. Use ONLY the exact headlines and hashes provided below.
2. NEVER annotate individual headlines.
3. When "Task - Duplicate Photos" is shown: The ONLY way to represent reused images is inside the "duplicate_photos" array.
4. For each photo hash, group all headlines that share it.
5. When "Task - Duplicate Photos" is shown: If a hash appears only once, do not include it in "duplicate_photos".
6. When "Task - Duplicate Photos" is shown: Only report duplicate photos when DIFFERENT articles use the same image. Duplicate articles (same story repeated) have already been filtered out.
{stories_context}

---
"""

        if config.use_duplicate_photos:
            prompt += """
**Task - Duplicate Photos (Group by Hash - Different Articles Only)**
- For each hash that appears in multiple stories, return one object with:
- "hash": the exact hash
- "count": how many DIFFERENT stories use that hash
- "headlines": array of exact headlines (these should be different articles using the same image)
"""

        if config.use_person_analysis:
            prompt += """
**Task - People in Photos**
- For each story whose photo clearly shows a person's face, assign a "person_hash".
- If the same person appears in several stories, use the same person_hash.
- Format: {"headline": "Story A", "person_hash": "male_40s_dark_hair"}
"""

        technical = []
        if config.use_missing_images:
            technical.append("- **Missing Images:** Any story with empty imageUrl or missing hash. Return headline.")
        if config.use_old_stories:
            technical.append(
                f"- **Old Stories:** Any story with a visible date older than {config.days_old} days. "
                "Return headline, visible_date, and age_days."
            )
        if technical:
            prompt += "\n**Task - Technical Issues**\n" + "\n".join(technical) + "\n"

        structure = []
        if config.use_duplicate_photos:
            structure.append('  "duplicate_photos": [\n    {"hash": "abc123", "count": 3, "headlines": ["Story A", "Story B", "Story C"]}\n  ]')
        if config.use_person_analysis:
            structure.append('  "people_in_stories": [\n    {"headline": "Story A", "person_hash": "male_40s_dark_hair"}\n  ]')
        if config.use_missing_images:
            structure.append('  "missing_images": [\n    {"headline": "Story D"}\n  ]')
        if config.use_old_stories:
            structure.append('  "old_stories": [\n    {"headline": "Story E", "visible_date": "Aug 5, 2023", "age_days": 35}\n  ]')

        prompt += "\n---\n**Return ONLY valid JSON** in this exact structure:\n\n{\n" + ",\n".join(structure) + "\n}\n"
        return prompt

    def upload_screenshot(self, file_path: str, retries: int = settings.AI_UPLOAD_RETRIES) -> Any:
        """
        Upload a screenshot for vision analysis, retrying with a growing delay.

        Args:
            file_path: Path of the PNG screenshot
            retries: Attempts after the first one

        Returns:
            The uploaded file handle (its `name` is the stored reference)

        Raises:
            AIServiceError: If every attempt fails
        """
        for attempt in range(retries + 1):
            try:
                uploaded = genai.upload_file(path=file_path, mime_type="image/png")
                logger.info(f"Uploaded screenshot {file_path} as {uploaded.name}")
                return uploaded
            except Exception as e:
                logger.warning(f"Upload attempt {attempt + 1} failed: {e}")
                if attempt == retries:
                    raise AIServiceError(f"Upload failed after {retries + 1} attempts: {e}") from e
                time.sleep(attempt + 1)

    def analyze_stories(self, url: str, stories: List[StoryData], screenshot: Any = None) -> str:
        """
        Ask the model for its own analysis of the stories.

        Args:
            url: The monitored homepage
            stories: Unique stories
            screenshot: Uploaded screenshot handle to include, if any

        Returns:
            str: The model output reduced to its JSON object text

        Raises:
            AIServiceError: If the API call fails
        """
        prompt = self.build_prompt(url, stories)
        contents = [screenshot, prompt] if screenshot is not None else prompt

        try:
            response = self.model.generate_content(contents)
            raw_output = (response.text or "").strip() or "{}"
        except Exception as e:
            raise AIServiceError(f"Gemini analysis failed for {url}: {e}") from e

        log_ai_interaction(self.config.log_dir, url, prompt, raw_output)
        return clean_json_response(raw_output)

    def cross_check(self, url: str, stories: List[StoryData],
                    screenshot_path: Optional[str] = None) -> Tuple[Optional[str], Dict[str, Any]]:
        """
        Run the full cross-check for one URL.

        Failures are logged and degrade to an empty analysis so the local
        result is still saved.

        Returns:
            Tuple[Optional[str], dict]: Uploaded file reference (or None) and
            the decoded model output ({} when unavailable)
        """
        uploaded = None
        if screenshot_path and self.config.use_screenshot_analysis:
            try:
                uploaded = self.upload_screenshot(screenshot_path)
            except AIServiceError as e:
                logger.error(f"Screenshot upload failed for {url}: {e}")

        file_id = getattr(uploaded, "name", None)

        try:
            output = self.analyze_stories(url, stories, uploaded)
        except AIServiceError as e:
            logger.error(f"{e}; continuing with local analysis only")
            return file_id, {}

        try:
            decoded = json.loads(output)
        except ValueError as e:
            logger.error(f"JSON parse error for {url}: {e}; continuing with local analysis only")
            return file_id, {}

        if not isinstance(decoded, dict):
            logger.warning(f"Unexpected AI output type for {url}: {type(decoded).__name__}")
            return file_id, {}

        return file_id, decoded

    async def cross_check_async(self, url: str, stories: List[StoryData],
                                screenshot_path: Optional[str] = None) -> Tuple[Optional[str], Dict[str, Any]]:
        """cross_check in a worker thread."""
        return await asyncio.to_thread(self.cross_check, url, stories, screenshot_path)
