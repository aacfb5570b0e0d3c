"""Text matcher: on-demand substring search over file contents."""

import asyncio
import time
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

import structlog

from everywhere.core.exclusions import ExclusionFilter
from everywhere.core.types import Range, TextMatchItem
from everywhere.core.uris import path_to_uri
from everywhere.host.workspace import Workspace

logger = structlog.get_logger()

TEXT_MATCH_PRIORITY = 30
TEXT_MATCH_SCORE = 1.0
MAX_FILES = 1000


@dataclass
class _Scan:
    query: str
    results: list[TextMatchItem] = field(default_factory=list)
    cancelled: bool = False
    task: "asyncio.Task[list[TextMatchItem]] | None" = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


class TextSearchProvider:
    """Scans workspace files for lines containing the query.

    Nothing is indexed ahead of time. One scan runs at a time: asking for
    the query already being scanned joins that scan, asking for a new query
    cancels the old scan between two files and starts over. Every scan
    collects into its own list, so results never mix queries.

    Attributes:
        max_results_per_file: Matches kept per file.
        max_files: Files visited per scan.
    """

    name = "text"

    def __init__(
        self,
        workspace: Workspace,
        exclusions: ExclusionFilter,
        max_results_per_file: int = 20,
        max_files: int = MAX_FILES,
    ) -> None:
        """Initialize text matcher.

        Args:
            workspace: Host used to list and read files.
            exclusions: Filter applied to every scanned file.
            max_results_per_file: Matches kept per file.
            max_files: Files visited per scan.
        """
        self._workspace = workspace
        self._exclusions = exclusions
        self.max_results_per_file = max_results_per_file
        self.max_files = max_files
        self._scan: _Scan | None = None
        self._results: list[TextMatchItem] = []

    @property
    def searching(self) -> bool:
        """Whether a scan is in flight."""
        return self._scan is not None and self._scan.running

    @property
    def exclusions(self) -> ExclusionFilter:
        """Filter applied to scanned files."""
        return self._exclusions

    @exclusions.setter
    def exclusions(self, exclusions: ExclusionFilter) -> None:
        self._exclusions = exclusions

    async def get_items(self) -> list[TextMatchItem]:
        """Results of the most recent completed scan."""
        return list(self._results)

    async def refresh(self, force: bool = False) -> None:
        """Forget the last results."""
        self._results = []

    async def search(self, query: str) -> list[TextMatchItem]:
        """Find lines containing ``query``, case-insensitively.

        Args:
            query: Text to look for; blank clears the results.

        Returns:
            Matches of this query. A scan cancelled by a newer query returns
            what it found before stopping.
        """
        if not query.strip():
            self.cancel()
            self._results = []
            return []

        joined = self._scan
        if joined is not None and joined.query == query:
            pending = joined.task
            if pending is not None and not pending.done():
                return list(await asyncio.shield(pending))

        self.cancel()
        scan = _Scan(query=query)
        task = asyncio.create_task(self._run(scan), name=f"text-search:{query}")
        scan.task = task
        self._scan = scan

        results = await asyncio.shield(task)
        if self._scan is scan:
            self._results = list(results)
        return list(results)

    def cancel(self) -> None:
        """Ask the running scan to stop before its next file."""
        if self._scan is not None and self._scan.running and not self._scan.cancelled:
            self._scan.cancelled = True
            logger.info("text_search_cancelled", query=self._scan.query)

    async def close(self) -> None:
        """Cancel the running scan and wait for it to stop."""
        self.cancel()
        scan = self._scan
        if scan is not None and scan.task is not None:
            await asyncio.gather(scan.task, return_exceptions=True)
        self._scan = None

    async def _run(self, scan: _Scan) -> list[TextMatchItem]:
        started = time.perf_counter()
        files = await self._list_files()
        needle = scan.query.lower()
        visited = 0

        for path in files:
            if scan.cancelled:
                break
            visited += 1
            if self._exclusions.should_exclude(path):
                continue
            try:
                text = await self._workspace.read_text(path)
            except Exception as e:
                logger.debug("text_search_read_failed", path=str(path), error=str(e))
                continue
            if "\x00" in text:
                continue
            scan.results.extend(self._match_lines(path, text, needle, scan.query))
            await asyncio.sleep(0)

        logger.info(
            "text_search_completed",
            query=scan.query,
            files=visited,
            matches=len(scan.results),
            cancelled=scan.cancelled,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return scan.results

    async def _list_files(self) -> list[Path]:
        files: list[Path] = []
        for root in self._workspace.roots:
            try:
                files.extend(await self._workspace.find_files(root, self._exclusions))
            except Exception as e:
                logger.warning("text_search_listing_failed", root=str(root), error=str(e))
            if len(files) >= self.max_files:
                break
        return files[: self.max_files]

    def _match_lines(
        self,
        path: Path,
        text: str,
        needle: str,
        query: str,
    ) -> list[TextMatchItem]:
        uri = path_to_uri(path)
        description = self._workspace.relative_path(uri)
        matches: list[TextMatchItem] = []

        for line_number, line in enumerate(text.split("\n")):
            column = line.lower().find(needle)
            if column < 0:
                continue

            match_range = Range.from_coordinates(
                line_number, column, line_number, column + len(query)
            )
            matches.append(
                TextMatchItem(
                    id=f"text-match:{uri}:{line_number}:{column}",
                    label=line.strip(),
                    description=description,
                    detail=f"Line {line_number + 1}",
                    uri=uri,
                    range=match_range,
                    line_text=line,
                    match_text=line[column : column + len(query)] or query,
                    priority=TEXT_MATCH_PRIORITY,
                    icon="file-text",
                    action=partial(self._workspace.open_location, uri, match_range),
                )
            )
            if len(matches) >= self.max_results_per_file:
                break
        return matches
