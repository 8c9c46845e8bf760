"""Installer tasks, in the order the menu presents them."""

from __future__ import annotations

from devstation.exceptions import InvalidArgumentError
from devstation.tasks.base import Task, TaskContext
from devstation.tasks.claudecode import ClaudeCodeTask
from devstation.tasks.codeserver import CodeServerTask
from devstation.tasks.codex import CodexTask
from devstation.tasks.cxx import CxxTask
from devstation.tasks.docker import DockerTask
from devstation.tasks.gemini import GeminiTask
from devstation.tasks.golang import GolangTask
from devstation.tasks.java import JavaTask
from devstation.tasks.mcp import McpTask
from devstation.tasks.nodejs import NodejsTask
from devstation.tasks.rust import RustTask
from devstation.tasks.system_init import SystemInitTask

TASKS: tuple[Task, ...] = (
    SystemInitTask(),
    NodejsTask(),
    McpTask(),
    DockerTask(),
    CodeServerTask(),
    ClaudeCodeTask(),
    CodexTask(),
    GeminiTask(),
    CxxTask(),
    JavaTask(),
    GolangTask(),
    RustTask(),
)


def task_names() -> list[str]:
    return [task.name for task in TASKS]


def get_task(name: str) -> Task:
    """Look up a task by name (case-insensitive).

    Raises
    ------
    InvalidArgumentError
        When no task has that name.
    """
    wanted = name.strip().lower()
    for task in TASKS:
        if task.name == wanted:
            return task
    raise InvalidArgumentError(
        f"Unknown task: {name!r}",
        hint="Available tasks: " + ", ".join(task_names()),
    )


__all__ = ["TASKS", "Task", "TaskContext", "get_task", "task_names"]
