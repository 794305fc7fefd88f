"""
Slack Notification Service

Renders an analysis into a short summary plus threaded details and posts
both through the Slack Web API (chat.postMessage). Delivery is best-effort:
failures are logged and never interrupt the pipeline.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from config import settings
from utils.exceptions import NotificationError
from utils.helpers import count_group_members
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SlackReport:
    """Summary line(s) for the channel and the details for its thread."""
    summary: str
    details: str


def _format_groups(title: str, groups) -> str:
    text = f"\n{title}\n"
    for index, group in enumerate(groups, 1):
        text += f"\nGroup {index} ({len(group)} articles):\n"
        for position, headline in enumerate(group, 1):
            text += f"{position}. `{headline}`\n"
        text += "\n"
    return text


def generate_slack_message(analysis: Dict[str, Any], days_old: int = settings.DAYS_OLD) -> Optional[SlackReport]:
    """
    Render an analysis dict into a Slack report.

    Args:
        analysis: Output of AnalysisResult.to_dict()
        days_old: Stale-story threshold shown in the text

    Returns:
        Optional[SlackReport]: None when there is nothing to report
    """
    reused_photo_groups = analysis.get("reused_photo_groups") or []
    reused_person_groups = analysis.get("reused_person_groups") or []
    missing_images = analysis.get("missing_images") or []
    old_stories = analysis.get("old_stories") or []

    total_photo_stories = count_group_members(reused_photo_groups)
    total_person_stories = count_group_members(reused_person_groups)

    if not any([total_photo_stories, total_person_stories, missing_images, old_stories]):
        return None

    publication = urlparse(analysis.get("url", "")).hostname or analysis.get("url", "")

    summary = f"{publication} contains:"
    if total_photo_stories:
        summary += f"\n• {total_photo_stories} stories with duplicate photos"
    if total_person_stories:
        summary += f"\n• {total_person_stories} stories showing the same person"
    if missing_images:
        summary += f"\n• {len(missing_images)} stories missing images"
    if old_stories:
        summary += f"\n• {len(old_stories)} stories older than {days_old} days"

    details = ""
    if reused_photo_groups:
        details += _format_groups(":camera: *Duplicate Photo Groups:*", reused_photo_groups)
    if reused_person_groups:
        details += _format_groups(":bust_in_silhouette: *Reused Person Groups:*", reused_person_groups)
    if missing_images:
        details += "\n:frame_with_picture: *Articles Missing Images:*\n"
        for index, story in enumerate(missing_images, 1):
            details += f"{index}. `{story['headline']}`\n"
        details += "\n"
    if old_stories:
        details += f"\n:date: *Articles Older than {days_old} Days:*\n"
        for index, story in enumerate(old_stories, 1):
            details += f"{index}. `{story['headline']}` _({story['age_days']} days old)_\n"

    return SlackReport(summary=summary.strip(), details=details.strip())


class SlackService:
    """Posts monitor messages to one Slack channel."""

    def __init__(self, token: Optional[str] = None, channel: Optional[str] = None,
                 api_url: str = settings.SLACK_API_URL):
        self.token = token if token is not None else settings.SLACK_ACCESS_TOKEN
        self.channel = channel if channel is not None else settings.SLACK_CHANNEL
        self.api_url = api_url

    def post_message(self, text: str, thread_ts: Optional[str] = None) -> Optional[str]:
        """
        Post one message.

        Args:
            text: Message text (Slack mrkdwn)
            thread_ts: Parent message timestamp to reply in a thread

        Returns:
            Optional[str]: The posted message's ts

        Raises:
            NotificationError: If the request fails or Slack answers ok=false
        """
        payload = {"channel": self.channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                timeout=settings.SLACK_TIMEOUT
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise NotificationError(f"Slack request failed: {e}") from e

        if not body.get("ok"):
            raise NotificationError(f"Slack API error: {body.get('error', 'unknown_error')}")

        return body.get("ts")

    def post_report(self, analysis: Dict[str, Any], days_old: int = settings.DAYS_OLD) -> bool:
        """
        Post the summary for an analysis and its details as a thread reply.

        Returns:
            bool: True if a message was posted, False if there was nothing to
            report or delivery failed
        """
        report = generate_slack_message(analysis, days_old)
        if report is None:
            logger.info(f"No Slack message needed for {analysis.get('url')}")
            return False

        try:
            ts = self.post_message(f"{settings.SLACK_MESSAGE_PREFIX}\n{report.summary}")
            if report.details:
                self.post_message(report.details, thread_ts=ts)
            logger.info(f"Slack summary + threaded details sent for {analysis.get('url')}")
            return True
        except NotificationError as e:
            logger.error(f"Slack upload failed: {e}")
            return False

    def post_error(self, message: str) -> bool:
        """Post a top-level error notice; returns False if it could not be delivered."""
        try:
            self.post_message(f"{settings.SLACK_ERROR_PREFIX}\n>{message}")
            return True
        except NotificationError as e:
            logger.error(f"Could not deliver error notification: {e}")
            return False

    async def post_report_async(self, analysis: Dict[str, Any], days_old: int = settings.DAYS_OLD) -> bool:
        return await asyncio.to_thread(self.post_report, analysis, days_old)

    async def post_error_async(self, message: str) -> bool:
        return await asyncio.to_thread(self.post_error, message)
