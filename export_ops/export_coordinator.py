"""
Export Coordinator - runs one project export from pre-flight checks to result.

The export is an explicit state machine over an ``ExportContext``:

    IDLE -> PREFLIGHT_CHECKING -> AWAITING_DESTINATION -> WRITING
         -> FINALIZING | RESTORING -> SUCCESS | FAILED | CANCELLED

Each state has one step method that returns the next state. ``iter_export``
yields after every step so a cooperative host can interleave redraws;
``export_project`` simply drives it to completion.
"""

import os
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import psutil

from colored_logger import get_colored_logger

from .archive_builder import ArchiveBuilder, CancelToken
from .archive_verifier import ZipArchiveVerifier
from .models import (
    ArchiveTarget,
    BuildResult,
    ExclusionConfig,
    ExportOutcome,
    ExportResult,
    ExportState,
    FileManifest,
)
from .path_filter import PathFilter
from .path_utils import ArchivePathGenerator
from .safe_replace import ReplaceError, SafeReplaceWriter

logger = get_colored_logger(__name__)

NOT_EXPORTED = "The project has not been exported."


class ExportHost:
    """
    Host callbacks consumed by the coordinator.

    The defaults describe a host with nothing unsaved that never picks a
    destination; real hosts override what they support. ``prompt_save_*``
    return True once saved and False when the user declines; raising means
    saving failed.
    """

    def check_unsaved_project_state(self) -> bool:
        return False

    def check_unsaved_scene_state(self) -> bool:
        return False

    def prompt_save_project(self) -> bool:
        return True

    def prompt_save_scene(self) -> bool:
        return True

    def choose_save_location(self, default_name: str) -> Optional[str]:
        return None

    def report_progress(self, index: int, total: int, relative_path: str) -> bool:
        return True

    def report_error(self, message: str) -> None:
        logger.failure("ERROR! %s", message)

    def report_warning(self, message: str) -> None:
        logger.warning("%s", message)

    def report_success(self, message: str) -> None:
        logger.success("SUCCESS! %s", message)


@dataclass
class ExportContext:
    """All state of one export call."""

    project_path: str
    config: ExclusionConfig
    host: ExportHost
    progress_sink: object = None
    cancel_token: Optional[CancelToken] = None
    project_name: str = ""
    default_zip_name: str = ""
    state: ExportState = ExportState.IDLE
    history: List[ExportState] = field(default_factory=list)
    target: Optional[ArchiveTarget] = None
    writer: Optional[SafeReplaceWriter] = None
    manifest: Optional[FileManifest] = None
    build_result: Optional[BuildResult] = None
    warnings: List[str] = field(default_factory=list)
    result: Optional[ExportResult] = None


class ExportCoordinator:
    """Orchestrates filtering, safe replacement and archive building."""

    def __init__(
        self,
        project_path: Optional[str] = None,
        builder: Optional[ArchiveBuilder] = None,
        path_filter: Optional[PathFilter] = None,
        verifier: Optional[ZipArchiveVerifier] = None,
        check_disk_space: bool = True,
        verify_archive: bool = True,
    ):
        self.project_path = os.path.abspath(project_path or os.getcwd())
        self.builder = builder or ArchiveBuilder()
        self.path_filter = path_filter or PathFilter()
        self.verifier = verifier or ZipArchiveVerifier()
        self.path_generator = ArchivePathGenerator()
        self.check_disk_space = check_disk_space
        self.verify_archive = verify_archive
        self._running = False

        self._steps = {
            ExportState.IDLE: self._step_start,
            ExportState.PREFLIGHT_CHECKING: self._step_preflight,
            ExportState.AWAITING_DESTINATION: self._step_choose_destination,
            ExportState.WRITING: self._step_write,
            ExportState.FINALIZING: self._step_finalize,
            ExportState.RESTORING: self._step_restore,
        }

    def export_project(
        self,
        config: ExclusionConfig,
        host: ExportHost,
        progress_sink=None,
        cancel_token: Optional[CancelToken] = None,
    ) -> ExportResult:
        """
        Export the project to a zip file chosen by the host.

        Args:
            config: Exclusion snapshot for this run
            host: Pre-flight, destination and reporting callbacks
            progress_sink: Progress display; defaults to ``host.report_progress``
            cancel_token: Optional cooperative cancellation flag

        Returns:
            ExportResult describing the terminal outcome

        Raises:
            RuntimeError: If an export is already running on this coordinator
        """
        context = None
        for context in self.iter_export(config, host, progress_sink, cancel_token):
            pass
        return context.result

    def iter_export(
        self,
        config: ExclusionConfig,
        host: ExportHost,
        progress_sink=None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Iterator[ExportContext]:
        """Run the export one state at a time, yielding the context after each step."""
        if self._running:
            raise RuntimeError("An export is already running; exports are not re-entrant")

        context = None
        self._running = True
        try:
            context = ExportContext(
                project_path=self.project_path,
                config=config,
                host=host,
                progress_sink=(
                    progress_sink if progress_sink is not None else host.report_progress
                ),
                cancel_token=cancel_token,
            )
            context.history.append(context.state)

            while not context.state.is_terminal:
                step = self._steps[context.state]
                next_state = step(context)
                logger.debug("Export state: %s -> %s", context.state.name, next_state.name)
                context.state = next_state
                context.history.append(next_state)
                yield context

            self._report(context)
        finally:
            if context is not None and not context.state.is_terminal:
                self._abandon(context)
            self._running = False

    # -- steps ---------------------------------------------------------------

    def _step_start(self, ctx: ExportContext) -> ExportState:
        ctx.project_name = self.path_generator.project_name(ctx.project_path)
        ctx.default_zip_name = self.path_generator.default_zip_name(ctx.project_path)
        return ExportState.PREFLIGHT_CHECKING

    def _step_preflight(self, ctx: ExportContext) -> ExportState:
        if not ctx.project_name:
            return self._fail(
                ctx,
                ExportOutcome.PREFLIGHT_ABORTED,
                "The project name cannot be empty.\n"
                "Change the project name and try again.",
            )

        checks = (
            (ctx.host.check_unsaved_project_state, ctx.host.prompt_save_project, "project"),
            (ctx.host.check_unsaved_scene_state, ctx.host.prompt_save_scene, "scene"),
        )
        for needs_save, prompt_save, what in checks:
            if not needs_save():
                continue
            try:
                saved = prompt_save()
            except Exception as e:
                logger.debug("Saving the %s failed", what, exc_info=True)
                return self._fail(
                    ctx,
                    ExportOutcome.PREFLIGHT_ABORTED,
                    f"{e}\nThe {what} has not been saved.\n{NOT_EXPORTED}",
                )
            if not saved:
                return self._fail(
                    ctx,
                    ExportOutcome.PREFLIGHT_ABORTED,
                    f"The {what} has unsaved changes.\n{NOT_EXPORTED}",
                )

        return ExportState.AWAITING_DESTINATION

    def _step_choose_destination(self, ctx: ExportContext) -> ExportState:
        chosen = ctx.host.choose_save_location(ctx.default_zip_name)
        if not chosen:
            logger.info("No destination chosen; nothing exported")
            ctx.result = ExportResult(ExportOutcome.NO_DESTINATION)
            return ExportState.CANCELLED

        final_path = self.path_generator.ensure_extension(os.path.abspath(chosen))
        ctx.target = ArchiveTarget(final_path)
        ctx.writer = SafeReplaceWriter(ctx.target)
        return ExportState.WRITING

    def _step_write(self, ctx: ExportContext) -> ExportState:
        try:
            manifest = self.path_filter.build_manifest(ctx.project_path, ctx.config)
        except OSError as e:
            return self._fail(ctx, ExportOutcome.PREFLIGHT_ABORTED, f"{e}\n{NOT_EXPORTED}")
        ctx.manifest = manifest.without(
            [ctx.target.final_path, ctx.target.parked_path]
        )

        space_warning = self._check_free_space(ctx)
        if space_warning:
            logger.warning("%s", space_warning)
            ctx.warnings.append(space_warning)

        try:
            ctx.warnings.extend(ctx.writer.prepare())
        except ReplaceError as e:
            return self._fail(ctx, ExportOutcome.REPLACE_FAILED, f"{e}\n{NOT_EXPORTED}")

        try:
            ctx.build_result = self.builder.build(
                ctx.manifest,
                ctx.target,
                ctx.config,
                ctx.progress_sink,
                ctx.cancel_token,
            )
        except BaseException:
            ctx.warnings.extend(ctx.writer.rollback())
            raise

        if ctx.build_result.completed:
            return ExportState.FINALIZING
        return ExportState.RESTORING

    def _step_finalize(self, ctx: ExportContext) -> ExportState:
        build = ctx.build_result

        if self.verify_archive and not self.verifier.verify_integrity(
            ctx.target.final_path
        ):
            logger.error("Integrity check failed for %s", ctx.target.final_path)
            build.completed = False
            build.error = (
                f"The archive {ctx.target.final_path} failed its integrity check."
            )
            return ExportState.RESTORING

        ctx.warnings.extend(ctx.writer.commit())

        message = (
            "The project was successfully exported "
            f"(the Zip has {build.included_count} files). {ctx.target.final_path}"
        )
        if build.skipped:
            listing = "\n".join(
                os.path.relpath(record.path, ctx.project_path) for record in build.skipped
            )
            message += (
                f"\n{len(build.skipped)} file(s) could not be read and were skipped:\n"
                f"{listing}"
            )

        ctx.result = ExportResult(
            ExportOutcome.SUCCESS,
            message=message,
            included_count=build.included_count,
            skipped=list(build.skipped),
            warnings=ctx.warnings,
            archive_path=ctx.target.final_path,
        )
        return ExportState.SUCCESS

    def _step_restore(self, ctx: ExportContext) -> ExportState:
        ctx.warnings.extend(ctx.writer.rollback())
        build = ctx.build_result

        if build.cancelled:
            ctx.result = ExportResult(
                ExportOutcome.CANCELLED,
                message="The compression has been cancelled before completion.",
                included_count=build.included_count,
                skipped=list(build.skipped),
                warnings=ctx.warnings,
            )
            return ExportState.CANCELLED

        outcome = (
            ExportOutcome.REPLACE_FAILED
            if build.destination_failed
            else ExportOutcome.PARTIAL_FAILURE
        )
        ctx.result = ExportResult(
            outcome,
            message=f"{build.error}\nThe project was not exported.",
            included_count=build.included_count,
            skipped=list(build.skipped),
            warnings=ctx.warnings,
        )
        return ExportState.FAILED

    # -- helpers -------------------------------------------------------------

    def _fail(self, ctx: ExportContext, outcome: ExportOutcome, message: str) -> ExportState:
        ctx.result = ExportResult(outcome, message=message, warnings=ctx.warnings)
        return ExportState.FAILED

    def _abandon(self, ctx: ExportContext) -> None:
        """Clean up after the caller stopped iterating or a step raised."""
        if ctx.writer is not None:
            ctx.warnings.extend(ctx.writer.rollback())
        logger.notice("Export stopped in state %s", ctx.state.name)

        ctx.state = ExportState.CANCELLED
        ctx.history.append(ctx.state)
        ctx.result = ExportResult(
            ExportOutcome.CANCELLED,
            message="The export was stopped before completion.",
            included_count=ctx.build_result.included_count if ctx.build_result else 0,
            warnings=ctx.warnings,
        )
        for warning in ctx.warnings:
            ctx.host.report_warning(warning)

    def _check_free_space(self, ctx: ExportContext) -> Optional[str]:
        if not self.check_disk_space:
            return None

        destination_dir = os.path.dirname(ctx.target.final_path)
        try:
            free = psutil.disk_usage(destination_dir).free
        except OSError as e:
            logger.debug("Could not read free space for %s: %s", destination_dir, e)
            return None

        required = ctx.manifest.total_size()
        if free < required:
            return (
                f"Low disk space in {destination_dir} "
                f"({free / (1024 * 1024):.1f} MB free, the project files total "
                f"{required / (1024 * 1024):.1f} MB). The export may fail."
            )
        return None

    def _report(self, ctx: ExportContext) -> None:
        result = ctx.result
        if result.outcome is ExportOutcome.NO_DESTINATION:
            return
        if result.success:
            ctx.host.report_success(result.message)
        else:
            ctx.host.report_error(result.message)
        for warning in result.warnings:
            ctx.host.report_warning(warning)
