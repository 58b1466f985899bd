# common/orchestrator.py
# -*- coding: utf-8 -*-
"""
Centralized orchestrator for running a fixed sequence of tasks.
"""

import logging
from typing import Any, Callable, Dict, List, Optional


class PipelineResult:
    """Outcome of one orchestrator run."""

    def __init__(self) -> None:
        self.completed: List[str] = []
        self.skipped: List[str] = []
        self.failed_task: Optional[str] = None
        self.error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def __repr__(self) -> str:
        return (
            f"PipelineResult(completed={self.completed!r}, skipped={self.skipped!r}, "
            f"failed_task={self.failed_task!r}, error={self.error!r})"
        )


class Orchestrator:
    """Runs tasks in the order they were added and stops at the first failure."""

    def __init__(
        self,
        settings: Any,
        orchestrator_logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            settings: The settings object handed to every task.
            orchestrator_logger: An optional logger instance.
        """
        self.settings = settings
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.tasks: List[Dict[str, Any]] = []
        # Shared context for tasks to pass state between each other
        self.context: Dict[str, Any] = {}

    def add_task(
        self,
        name: str,
        func: Callable,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
        skip_if: Optional[Callable[[], bool]] = None,
    ) -> None:
        """
        Adds a task to the execution list.

        Args:
            name: A human-readable name for the task.
            func: The function to execute for this task.
            args: Positional arguments to pass to the function.
            kwargs: Keyword arguments to pass to the function.
            skip_if: Evaluated right before the task runs; a True result
                skips it without calling ``func``.
        """
        self.tasks.append({
            "name": name,
            "func": func,
            "args": args or [],
            "kwargs": kwargs or {},
            "skip_if": skip_if,
        })
        self.logger.debug(f"Task '{name}' added to the queue.")

    def task_names(self) -> List[str]:
        return [task["name"] for task in self.tasks]

    def run(self) -> PipelineResult:
        """
        Executes all added tasks in sequence.

        A task fails by raising. The exception is logged, stored on the
        returned result and no later task runs.
        """
        result = PipelineResult()
        self.logger.info("Orchestration started.")
        for i, task in enumerate(self.tasks):
            task_name = task["name"]
            skip_if = task["skip_if"]
            if skip_if is not None and skip_if():
                self.logger.info(
                    f"--- Stage {i + 1}: Skipping task '{task_name}' ---"
                )
                result.skipped.append(task_name)
                continue

            self.logger.info(f"--- Stage {i + 1}: Running task '{task_name}' ---")
            try:
                task_result = task["func"](
                    *task["args"], context=self.context, **task["kwargs"]
                )
            except Exception as e:
                self.logger.critical(f"🔥 Task '{task_name}' failed: {e}")
                self.logger.debug("Failure details:", exc_info=True)
                self.logger.error(
                    "A fatal error occurred. Halting orchestration."
                )
                result.failed_task = task_name
                result.error = e
                return result

            self.context[f"{task_name}_result"] = task_result
            result.completed.append(task_name)
            self.logger.info(f"✅ Task '{task_name}' completed successfully.")

        self.logger.info("✨ Orchestration finished successfully.")
        return result
