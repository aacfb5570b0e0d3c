"""Command provider: user-facing host actions."""

import re
from functools import partial

import structlog

from everywhere.core.types import CommandSearchItem, SearchItem
from everywhere.providers.base import BaseProvider

logger = structlog.get_logger()

INTERNAL_PREFIXES: tuple[str, ...] = ("_", "vscode.", "workbench.", "editor.")

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_WORD_START = re.compile(r"\b\w", re.ASCII)


def is_internal_command(command_id: str) -> bool:
    """Whether an action id is internal and must not be listed.

    Namespaced ids (any id containing ``.``) count as internal.
    """
    return command_id.startswith(INTERNAL_PREFIXES) or "." in command_id


def format_command_name(command_id: str) -> str:
    """Turn a camelCase or kebab-case id into Title Case words.

    >>> format_command_name("rebuildIndex")
    'Rebuild Index'
    >>> format_command_name("clear-recent-activity")
    'Clear Recent Activity'
    """
    name = _CAMEL_BOUNDARY.sub(r"\1 \2", command_id)
    name = name.replace("-", " ")
    return _WORD_START.sub(lambda match: match.group(0).upper(), name)


class CommandProvider(BaseProvider):
    """Lists host actions.

    The action registry is cheap to read and changes without notice, so
    every ``get_items`` re-enumerates it and there is no snapshot to refresh.
    """

    name = "commands"

    async def get_items(self) -> list[SearchItem]:
        try:
            return await self.collect()
        except Exception:
            logger.exception("provider_refresh_failed", provider=self.name)
            return []

    async def refresh(self, force: bool = False) -> None:
        return None

    async def collect(self) -> list[SearchItem]:
        commands = await self._workspace.list_commands()
        items: list[SearchItem] = [
            CommandSearchItem(
                id=f"command:{command_id}",
                label=format_command_name(command_id),
                description="Command",
                detail=command_id,
                command=command_id,
                icon="terminal-bash",
                action=partial(self._workspace.execute_command, command_id),
            )
            for command_id in commands
            if not is_internal_command(command_id)
        ]
        self._items = items
        return items
