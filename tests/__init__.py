"""
Test suite for export-project-to-zip.

Test Categories:
- Unit tests: path filtering, safe replacement, archive building, settings
- Integration tests: full exports through the coordinator and the CLI
- Fault injection: locked files, failed renames, cancellation mid-archive
"""
