"""Registry of the commands the compatibility layer answers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping


class CommandKind(enum.Enum):
    """Where a command is carried out."""

    HANDLER = "handler"
    """Answered by the layer itself, without touching stored collections."""

    STORAGE = "storage"
    """Answered by reading or writing stored documents."""

    BUILTIN = "builtin"
    """Answered from this registry alone."""


@dataclass(frozen=True)
class Command:
    """One supported command with its help text."""

    name: str
    help: str
    kind: CommandKind = CommandKind.HANDLER


_GUI_WORKAROUND_LAST_ERROR = (
    "Does not return last error. Is used as a workaround to allow use of some GUIs."
)
_ROLE_HELP = (
    "Returns the role of the SAP HANA compatibility layer for MongoDB Wire Protocol instance."
)
_DEBUG_HELP = "Used for debugging purposes."

_COMMAND_LIST = (
    Command("buildInfo", "Returns a summary of the build information."),
    Command(
        "usersInfo",
        "Returns user USERNAME. Is used as a workaround to allow use of some GUIs",
    ),
    Command(
        "rolesInfo",
        "Return role readWrite. Is used as a workaround to allow use of some GUIs",
    ),
    Command("getlasterror", _GUI_WORKAROUND_LAST_ERROR),
    Command("getLastError", _GUI_WORKAROUND_LAST_ERROR),
    Command("connectionStatus", "checks connection"),
    Command("create", "Creates the collection."),
    Command("dbStats", "Returns the statistics of the database."),
    Command("drop", "Drops the collection."),
    Command("dropDatabase", "Deletes the database."),
    Command("getLog", "Returns the most recent logged events from memory."),
    Command("hostInfo", "Returns a summary of the system information."),
    Command("isMaster", _ROLE_HELP),
    Command("hello", _ROLE_HELP),
    Command(
        "listCollections",
        "Returns the information of the collections and views in the database.",
    ),
    Command("listDatabases", "Returns a summary of all the databases."),
    Command(
        "listCommands",
        "Returns information about the currently supported commands.",
        CommandKind.BUILTIN,
    ),
    Command("ping", "Returns a pong response. Used for testing purposes."),
    Command("whatsmyuri", "An internal command."),
    Command("authenticate", "a method for authentication"),
    Command("delete", "Deletes documents matched by the query.", CommandKind.STORAGE),
    Command("find", "Returns documents matched by the custom query.", CommandKind.STORAGE),
    Command(
        "findAndModify",
        "find one document, modifies it and return either the old document or the new document.",
        CommandKind.STORAGE,
    ),
    Command(
        "count",
        "Returns the count of documents that's matched by the query.",
        CommandKind.STORAGE,
    ),
    Command("insert", "Inserts documents into the database.", CommandKind.STORAGE),
    Command("update", "Updates documents that are matched by the query.", CommandKind.STORAGE),
    Command("debug_error", _DEBUG_HELP),
    Command("debug_panic", _DEBUG_HELP),
)

COMMANDS: Mapping[str, Command] = MappingProxyType(
    {command.name: command for command in _COMMAND_LIST}
)


def lookup(name: str) -> Command:
    """Return the command registered under ``name``; raise KeyError if there is none."""
    try:
        return COMMANDS[name]
    except KeyError:
        raise KeyError(f"no such command: {name!r}") from None


def supported_commands() -> dict[str, Any]:
    """Build the reply document listing every supported command and its help."""
    return {
        "commands": {command.name: {"help": command.help} for command in COMMANDS.values()},
        "ok": 1.0,
    }