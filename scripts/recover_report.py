"""
Regenerate report PDFs for completed assessments.

Usage:
    python scripts/recover_report.py 42
    python scripts/recover_report.py 42 43 --force

Without ``--force`` an assessment whose stored report still resolves on disk
is left alone.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Make the src package importable when the script runs from any directory.
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog  # noqa: E402
from src.core.config import get_settings  # noqa: E402
from src.core.logging import setup_logging  # noqa: E402
from src.domain.services.artifact_store import (  # noqa: E402
    ArtifactPathError,
    ArtifactStore,
    LegacyPathResolver,
)
from src.domain.services.recovery import RecoveryCoordinator  # noqa: E402
from src.domain.services.report_builder import ReportBuilder  # noqa: E402
from src.domain.services.report_renderer import ReportRenderer  # noqa: E402
from src.infrastructure.db.session import dispose_engine, get_session_factory  # noqa: E402
from src.infrastructure.repositories.assessment_repository import (  # noqa: E402
    AssessmentRepository,
)

logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0].strip())
    parser.add_argument("assessment_ids", nargs="+", type=int, help="Assessment ids to recover")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-render even when the stored report file exists",
    )
    return parser.parse_args(argv)


async def _report_exists(resolver: LegacyPathResolver, assessment_id: int) -> bool:
    async with get_session_factory()() as session:
        assessment = await AssessmentRepository(session).get(assessment_id)
    if assessment is None or not assessment.pdf_path:
        return False
    try:
        return resolver.resolve(assessment.pdf_path).found
    except ArtifactPathError:
        return False


async def run(assessment_ids: list[int], *, force: bool) -> int:
    settings = get_settings()
    resolver = LegacyPathResolver(settings)
    coordinator = RecoveryCoordinator(
        get_session_factory(),
        ReportBuilder(ReportRenderer(), ArtifactStore(settings)),
    )

    failures = 0
    try:
        for assessment_id in assessment_ids:
            if not force and await _report_exists(resolver, assessment_id):
                print(f"{assessment_id}: report present, skipped")
                continue

            result = await coordinator.ensure_artifact(assessment_id)
            if result.success:
                print(f"{assessment_id}: recovered -> {result.relative_path}")
            else:
                failures += 1
                reason = result.reason.value if result.reason else "UNKNOWN"
                print(f"{assessment_id}: failed ({reason}) {result.error or ''}".rstrip())
    finally:
        await dispose_engine()
    return 1 if failures else 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(get_settings().log_level)
    return asyncio.run(run(args.assessment_ids, force=args.force))


if __name__ == "__main__":
    sys.exit(main())
