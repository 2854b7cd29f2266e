"""Strategy definitions for reading sprint board URLs."""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from urllib.parse import unquote, urlsplit

from taskpilot.core.errors import MalformedLocatorError
from taskpilot.core.models import SprintLocator

logger = logging.getLogger(__name__)


class LocatorParsingStrategy(ABC):
    """Abstract base class for turning a sprint URL into team and sprint names."""

    @abstractmethod
    def parse(self, raw_url: str) -> SprintLocator:
        """Parse the URL or raise MalformedLocatorError."""
        pass

    @staticmethod
    def path_segments(raw_url: str) -> List[str]:
        """Non-empty, percent-decoded path segments of an absolute URL."""
        try:
            parts = urlsplit(raw_url.strip())
        except ValueError as e:
            raise MalformedLocatorError(raw_url, str(e)) from e
        if not parts.scheme or not parts.netloc:
            raise MalformedLocatorError(raw_url, "not an absolute URL")

        try:
            return [unquote(part, errors="strict") for part in parts.path.split("/") if part]
        except UnicodeDecodeError as e:
            raise MalformedLocatorError(raw_url, "path segment cannot be decoded") from e


class TerminalSegmentStrategy(LocatorParsingStrategy):
    """
    Sprint boards put the sprint name last:

        .../_sprints/taskboard/{team}/{sprint}
        .../_sprints/backlog/{team}/{project}/{sprint}
        .../_sprints/{sprint}

    The team is the segment right after the first "backlog" or "taskboard"
    segment. The sprint is always the final segment, whatever it contains
    (spaces, numbers, dotted release names).
    """
    ANCHORS = ("backlog", "taskboard")

    def parse(self, raw_url: str) -> SprintLocator:
        segments = self.path_segments(raw_url)
        if not segments:
            raise MalformedLocatorError(raw_url, "URL has no path")

        sprint_name = segments[-1].strip()
        if not sprint_name:
            raise MalformedLocatorError(raw_url, "sprint segment is blank")

        team_name = self._team_after_anchor(segments)
        locator = SprintLocator(team_name=team_name, sprint_name=sprint_name)
        logger.info("Locator parsed: team=%r sprint=%r", locator.team_name, locator.sprint_name)
        return locator

    def _team_after_anchor(self, segments: List[str]) -> Optional[str]:
        for index, segment in enumerate(segments):
            if segment.lower() in self.ANCHORS:
                if index + 1 < len(segments):
                    return segments[index + 1].strip() or None
                return None
        return None


def parse_sprint_url(raw_url: str, strategy: Optional[LocatorParsingStrategy] = None) -> SprintLocator:
    """Parse a sprint board URL with the given strategy (default: TerminalSegmentStrategy)."""
    return (strategy or TerminalSegmentStrategy()).parse(raw_url)
