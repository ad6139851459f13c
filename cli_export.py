#!/usr/bin/env python3
"""
Export Project to Zip CLI Tool

A console host for the project export: filters the project tree, writes a
zip archive and safely replaces any archive already at the destination.

Usage:
    python3 cli_export.py export /path/to/project
    python3 cli_export.py export /path/to/project --output /backups/game.zip --yes
    python3 cli_export.py settings show --project /path/to/project
    python3 cli_export.py settings exclude-folder Recordings --project /path/to/project
    python3 cli_export.py info /path/to/game.zip
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from colored_logger import setup_colored_logging, get_colored_logger
from export_ops import (
    ArchiveBuilder,
    CancelToken,
    ExportCoordinator,
    ExportHost,
    ExportOutcome,
    ProgressPacer,
    ZipArchiveVerifier,
)
from settings import ExportSettings, SettingsError

logger = get_colored_logger(__name__)

EXIT_CANCELLED = 130


class ConsoleHost(ExportHost):
    """ExportHost that talks to the terminal."""

    def __init__(
        self,
        project_path: str,
        output: Optional[str] = None,
        assume_yes: bool = False,
        cancel_token: Optional[CancelToken] = None,
        input_func=input,
    ):
        self.project_path = project_path
        self.output = output
        self.assume_yes = assume_yes
        self.cancel_token = cancel_token
        self._input = input_func

    def _confirm(self, question: str) -> bool:
        if self.assume_yes:
            return True
        try:
            answer = self._input(f"{question} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def choose_save_location(self, default_name: str) -> Optional[str]:
        chosen = self.output
        if not chosen:
            default_path = os.path.join(self.project_path, default_name)
            if self.assume_yes:
                chosen = default_path
            else:
                try:
                    chosen = self._input(f"Save zip as [{default_path}]: ").strip()
                except EOFError:
                    return None
                chosen = chosen or default_path

        chosen = os.path.abspath(os.path.expanduser(chosen))
        if os.path.exists(chosen) and not self._confirm(
            f"{chosen} already exists. Replace it?"
        ):
            return None
        return chosen

    def report_progress(self, index: int, total: int, relative_path: str) -> bool:
        return not (self.cancel_token and self.cancel_token.is_cancelled)


class ExportCLI:
    """Command-line interface for project exports."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser with all commands and options."""
        parser = argparse.ArgumentParser(
            description="Export a project folder to a filtered zip archive",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Export the current project, asking where to save
  python3 cli_export.py export

  # Export without prompts, replacing an existing archive
  python3 cli_export.py export /path/to/project --output /backups/game.zip --yes

  # Show or change the exclusion settings
  python3 cli_export.py settings show --project /path/to/project
  python3 cli_export.py settings exclude-folder Recordings --project /path/to/project
  python3 cli_export.py settings reset --project /path/to/project

  # Describe an exported archive
  python3 cli_export.py info /backups/game.zip
            """,
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        export_parser = subparsers.add_parser(
            "export", help="Export the project to a zip archive"
        )
        export_parser.add_argument(
            "project_root",
            nargs="?",
            default=None,
            help="Project root folder (default: current directory)",
        )
        export_parser.add_argument(
            "--output", "-o", help="Destination zip path (asked if not given)"
        )
        export_parser.add_argument(
            "--yes",
            "-y",
            action="store_true",
            help="Do not prompt; use the default path and replace existing files",
        )
        export_parser.add_argument(
            "--no-pause",
            action="store_true",
            help="Disable progress pacing pauses",
        )
        export_parser.add_argument(
            "--quiet", "-q", action="store_true", help="Suppress progress output"
        )

        settings_parser = subparsers.add_parser(
            "settings", help="Show or change export settings"
        )
        settings_parser.add_argument(
            "action",
            choices=[
                "show",
                "reset",
                "exclude-folder",
                "include-folder",
                "exclude-extension",
                "include-extension",
                "include-builds",
                "exclude-builds",
                "root-name-zip",
                "root-name-project",
            ],
        )
        settings_parser.add_argument(
            "value", nargs="?", help="Folder name or extension for add/remove actions"
        )
        settings_parser.add_argument(
            "--project",
            "-p",
            default=None,
            help="Project root folder (default: current directory)",
        )

        info_parser = subparsers.add_parser(
            "info", help="Display information about an exported archive"
        )
        info_parser.add_argument("archive_path", help="Path to the zip file")
        info_parser.add_argument(
            "--detailed", action="store_true", help="Show the entry listing"
        )

        return parser

    def run(self, args: Optional[list] = None) -> int:
        """Run the CLI with the given arguments."""
        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            if parsed_args.command == "export":
                return self._handle_export(parsed_args)
            elif parsed_args.command == "settings":
                return self._handle_settings(parsed_args)
            elif parsed_args.command == "info":
                return self._handle_info(parsed_args)
            else:
                logger.error("Unknown command: %s", parsed_args.command)
                return 1

        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return EXIT_CANCELLED
        except Exception as e:
            logger.error("Error: %s", e)
            logger.debug("Full error details:", exc_info=True)
            return 1

    def _handle_export(self, args) -> int:
        """Handle the 'export' command."""
        project_path = os.path.abspath(args.project_root or os.getcwd())
        if not os.path.isdir(project_path):
            logger.error("Project folder does not exist: %s", project_path)
            return 1

        if args.quiet:
            logging.getLogger("export_ops").setLevel(logging.WARNING)

        config = ExportSettings(project_path=project_path).to_exclusion_config()
        cancel_token = CancelToken()
        host = ConsoleHost(
            project_path, output=args.output, assume_yes=args.yes, cancel_token=cancel_token
        )
        coordinator = ExportCoordinator(
            project_path,
            builder=ArchiveBuilder(pacer=ProgressPacer(enabled=not args.no_pause)),
        )

        def _on_interrupt(signum, frame):
            logger.notice("Cancelling after the current file...")
            cancel_token.cancel()

        previous_handler = signal.signal(signal.SIGINT, _on_interrupt)
        try:
            result = coordinator.export_project(config, host, cancel_token=cancel_token)
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        if result.outcome in (ExportOutcome.SUCCESS, ExportOutcome.NO_DESTINATION):
            return 0
        if result.outcome is ExportOutcome.CANCELLED:
            return EXIT_CANCELLED
        return 1

    def _handle_settings(self, args) -> int:
        """Handle the 'settings' command."""
        project_path = os.path.abspath(args.project or os.getcwd())
        settings = ExportSettings(project_path=project_path)

        value_actions = {
            "exclude-folder": settings.exclude_folder,
            "include-folder": settings.include_folder,
            "exclude-extension": settings.exclude_extension,
            "include-extension": settings.include_extension,
        }

        if args.action == "show":
            self._display_settings(settings)
            return 0

        if args.action in value_actions:
            if not args.value:
                logger.error("The '%s' action needs a value", args.action)
                return 1
            try:
                value_actions[args.action](args.value)
            except SettingsError as e:
                logger.error("%s", e)
                return 1
        elif args.action == "reset":
            settings.restore_defaults()
        elif args.action in ("include-builds", "exclude-builds"):
            settings.should_include_builds = args.action == "include-builds"
        else:
            settings.should_name_root_level_folder_with_zip_name = (
                args.action == "root-name-zip"
            )

        settings.save()
        logger.success("Settings updated: %s", settings.settings_file)
        self._display_settings(settings)
        return 0

    def _display_settings(self, settings: ExportSettings) -> None:
        logger.info("Settings file: %s", settings.settings_file)
        logger.info(
            "Excluded folders: %s", ", ".join(settings.effective_excluded_folders())
        )
        logger.info(
            "Excluded top-level extensions: %s",
            ", ".join(settings.top_level_extensions_to_exclude),
        )
        logger.info("Include Build(s) folders: %s", settings.should_include_builds)
        logger.info(
            "Name root folder with zip name: %s",
            settings.should_name_root_level_folder_with_zip_name,
        )
        logger.info(
            "Locked files skipped under: %s", ", ".join(settings.soft_fail_folders)
        )

    def _handle_info(self, args) -> int:
        """Handle the 'info' command."""
        archive_path = Path(args.archive_path)

        if not archive_path.exists():
            logger.error("Archive file does not exist: %s", archive_path)
            return 1

        verifier = ZipArchiveVerifier()
        try:
            info = verifier.get_archive_info(str(archive_path))
        except Exception as e:
            logger.error("Failed to read archive info: %s", e)
            return 1

        logger.info("Archive: %s", archive_path)
        logger.info("Files: %d", info["file_count"])
        logger.info("Root folder(s): %s", ", ".join(info["root_folders"]))
        logger.info("Compressed size: %.2f MB", info["compressed_size"] / (1024 * 1024))
        logger.info(
            "Uncompressed size: %.2f MB", info["uncompressed_size"] / (1024 * 1024)
        )
        logger.info("Compression ratio: %.1f%%", info["compression_ratio"])
        logger.info(
            "Integrity: %s",
            "OK" if verifier.verify_integrity(str(archive_path)) else "FAILED",
        )

        if args.detailed:
            logger.info("")
            logger.info("File listing:")
            for name in sorted(verifier.list_entries(str(archive_path))):
                logger.info("  %s", name)
        return 0


def main():
    """Main entry point for the CLI."""
    setup_colored_logging(level=logging.INFO)

    cli = ExportCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
