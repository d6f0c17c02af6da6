"""
Desktop change watcher.

Captures a baseline screenshot, then polls the desktop, diffs each new frame
against the baseline and asks the AI classifier whether the task is done once
enough of the screen has changed. Every resource a watch acquires (sleep
inhibitor, temp screenshots, watchdog timer) is owned by one ResourceSet and
released on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from dataclasses import asdict, dataclass
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from gofer.config import WatcherConfig
from gofer.core.classifier import CompletionJudge, Verdict
from gofer.core.context import TaskContext
from gofer.core.gateway import CommandGateway
from gofer.core.imaging import Frame, change_percentage, load_frame
from gofer.core.policy import OperatingMode
from gofer.core.resources import ResourceSet, remove_file, start_inhibitor, terminate_process
from gofer.exceptions import CaptureError, ResourceAcquisitionError

logger = logging.getLogger(__name__)

START_IMAGE = "startImage.png"
LATEST_IMAGE = "latestImage.png"

DISABLED_MESSAGE = "Desktop watching is currently disabled."
EXECUTION_DISABLED_MESSAGE = "Desktop watching needs command execution, which is disabled."
DEMO_NOTICE = "[DEMO MODE] Desktop watching is disabled for security reasons"
DEMO_MESSAGE = "Demo mode: Desktop watching is disabled for security. Task simulated as completed."
STARTED_NOTICE = "Gofer started watching the desktop for changes"
COMPLETED_NOTICE = "Gofer stopped watching the desktop for changes. Task completed."
STOPPED_MESSAGE = "Desktop watching was stopped"
BASELINE_FAILED_MESSAGE = "Failed to capture initial screenshot after multiple attempts"

InhibitorFactory = Callable[[Sequence[str]], Awaitable[asyncio.subprocess.Process]]


@dataclass
class WatchResult:
    """Outcome of one watch."""

    success: bool
    message: str

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class WatchState:
    start_time: float
    current_interval: float
    baseline: Frame
    consecutive_failures: int = 0


def backoff_interval(base: float, maximum: float, failures: int) -> float:
    """Polling interval after ``failures`` consecutive failed iterations."""
    return min(base * 2**failures, maximum)


class DesktopWatcher:
    """Watches the desktop until the AI judges ``task`` complete.

    Args:
        settings: Watcher configuration. Each watch works on its own copy.
        gateway: Gateway used to run the screenshot command.
        judge: Classifier chain deciding completion.
        inhibitor_factory: Starts the sleep inhibitor process.
        sleep: Awaitable sleep, injectable for tests.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        settings: WatcherConfig,
        gateway: CommandGateway,
        judge: CompletionJudge,
        *,
        inhibitor_factory: InhibitorFactory = start_inhibitor,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.gateway = gateway
        self.judge = judge
        self._inhibitor_factory = inhibitor_factory
        self._sleep = sleep
        self._clock = clock
        self._active: ResourceSet | None = None

    @property
    def is_watching(self) -> bool:
        return self._active is not None and not self._active.is_cleaned

    def stop(self) -> bool:
        """Tear down the active watch. Returns False if nothing was running."""
        if not self.is_watching:
            return False
        logger.info("Stopping desktop watch")
        self._active.cleanup()
        return True

    async def watch(self, task: str, context: TaskContext) -> WatchResult:
        """Watch the desktop until ``task`` completes, fails or times out.

        Never raises; every outcome is a WatchResult and is echoed to the
        task's channel.
        """
        settings = self.settings.model_copy(deep=True)

        if not settings.enabled:
            return WatchResult(False, DISABLED_MESSAGE)

        if self.gateway.config.demo_mode:
            context.post(DEMO_NOTICE)
            return WatchResult(False, DEMO_MESSAGE)

        if self.gateway.mode is OperatingMode.DISABLED:
            context.post(EXECUTION_DISABLED_MESSAGE)
            return WatchResult(False, EXECUTION_DISABLED_MESSAGE)

        logger.info(
            "Watching desktop: max %gs, interval %gs, threshold %g%%",
            settings.max_duration,
            settings.base_interval,
            settings.change_threshold,
        )
        context.post(STARTED_NOTICE)

        resources = ResourceSet()
        self._active = resources
        try:
            return await self._run(task, context, settings, resources)
        except Exception as exc:
            logger.exception("Error in desktop watch")
            return await self._finish(context, resources, f"Desktop watching failed: {exc}")
        finally:
            resources.cleanup()
            if self._active is resources:
                self._active = None

    async def send_screenshot(self, context: TaskContext) -> bool:
        """Capture the desktop once and deliver it through ``context``."""
        path = self.settings.screenshot_dir / LATEST_IMAGE
        try:
            await self._capture(path, self.settings, context)
        except CaptureError as exc:
            logger.warning("Screenshot failed: %s", exc)
            await context.notify(f"Screenshot failed: {exc}")
            return False
        try:
            await context.notify("Here is the screenshot:")
            return await context.send_document(path)
        finally:
            remove_file(path)

    async def _run(
        self,
        task: str,
        context: TaskContext,
        settings: WatcherConfig,
        resources: ResourceSet,
    ) -> WatchResult:
        try:
            settings.screenshot_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create screenshot directory %s: %s", settings.screenshot_dir, exc)
            return await self._finish(context, resources, "Failed to create temporary directory")

        if settings.inhibit_sleep:
            try:
                process = await self._inhibitor_factory(settings.inhibitor_command)
            except ResourceAcquisitionError as exc:
                return await self._finish(context, resources, f"Desktop watching failed: {exc}")
            resources.add("sleep inhibitor", partial(terminate_process, process))

        baseline = await self._capture_baseline(context, settings, resources)
        if baseline is None:
            return await self._finish(context, resources, BASELINE_FAILED_MESSAGE)

        watchdog = asyncio.get_running_loop().call_later(
            settings.max_duration + settings.max_interval, self._expire, resources
        )
        resources.add("watchdog", watchdog.cancel)

        latest_path = settings.screenshot_dir / LATEST_IMAGE
        resources.add("latest screenshot", partial(remove_file, latest_path))

        state = WatchState(
            start_time=self._clock(),
            current_interval=settings.base_interval,
            baseline=baseline,
        )

        while self._clock() - state.start_time < settings.max_duration:
            await self._sleep(state.current_interval)

            if resources.is_cleaned:
                return await self._finish(context, resources, STOPPED_MESSAGE)

            try:
                verdict = await self._poll(task, context, settings, state, latest_path)
                if verdict is not None and verdict.completed:
                    logger.info("Task completed! Stopping desktop watch.")
                    await context.send_document(latest_path, "Final screenshot")
                    resources.cleanup()
                    await context.notify(COMPLETED_NOTICE)
                    return WatchResult(True, f"Desktop task completed. AI result: {verdict.analysis}")
            except CaptureError as exc:
                state.consecutive_failures += 1
                state.current_interval = backoff_interval(
                    settings.base_interval, settings.max_interval, state.consecutive_failures
                )
                logger.warning(
                    "Watch iteration failed (%d/%d), next attempt in %gs: %s",
                    state.consecutive_failures,
                    settings.max_retries,
                    state.current_interval,
                    exc,
                )
                if state.consecutive_failures >= settings.max_retries:
                    return await self._finish(
                        context,
                        resources,
                        f"Desktop watching failed after {settings.max_retries} consecutive failures",
                    )
            finally:
                remove_file(latest_path)

        return await self._finish(
            context, resources, f"Desktop watching timed out after {settings.max_duration:g} seconds"
        )

    async def _poll(
        self,
        task: str,
        context: TaskContext,
        settings: WatcherConfig,
        state: WatchState,
        latest_path: Path,
    ) -> Verdict | None:
        frame = await self._capture(latest_path, settings, context)
        baseline = state.baseline

        if (frame.width, frame.height) != (baseline.width, baseline.height):
            logger.warning(
                "Screenshot dimensions mismatch (%dx%d, baseline %dx%d). Skipping analysis for this frame.",
                frame.width,
                frame.height,
                baseline.width,
                baseline.height,
            )
            return None

        percentage = change_percentage(baseline, frame, settings.pixel_threshold)
        logger.info("Change: %.2f%% (threshold: %g%%)", percentage, settings.change_threshold)

        state.consecutive_failures = 0
        state.current_interval = settings.base_interval

        if percentage <= settings.change_threshold:
            return None
        return await self.judge.judge(task, baseline.encoded, frame.encoded)

    async def _capture_baseline(
        self, context: TaskContext, settings: WatcherConfig, resources: ResourceSet
    ) -> Frame | None:
        path = settings.screenshot_dir / START_IMAGE
        resources.add("start screenshot", partial(remove_file, path))

        for attempt in range(1, settings.max_retries + 1):
            try:
                return await self._capture(path, settings, context)
            except CaptureError as exc:
                logger.warning("Screenshot attempt %d failed: %s", attempt, exc)
                if attempt < settings.max_retries:
                    await self._sleep(settings.retry_pause)
        return None

    async def _capture(self, path: Path, settings: WatcherConfig, context: TaskContext) -> Frame:
        """Run the screenshot command into ``path`` and decode the result.

        Raises:
            CaptureError: If the command fails or leaves no readable image.
        """
        remove_file(path)
        command = settings.screenshot_command.format(path=shlex.quote(str(path)))
        result = await self.gateway.run(command, context)
        if not result.success:
            raise CaptureError(f"Screenshot command failed: {result.stderr}")
        if not path.exists():
            raise CaptureError(f"Screenshot file not found: {path}")
        return load_frame(path)

    @staticmethod
    def _expire(resources: ResourceSet) -> None:
        logger.warning("Desktop watch passed its hard deadline; releasing resources")
        resources.cleanup()

    @staticmethod
    async def _finish(context: TaskContext, resources: ResourceSet, message: str) -> WatchResult:
        resources.cleanup()
        await context.notify(message)
        return WatchResult(False, message)
