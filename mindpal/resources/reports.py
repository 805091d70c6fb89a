"""Video-session reports and session analytics events.

Reports are generated server-side by the ``generate_session_report``
database function; this store triggers generation, keeps the latest
reports and renders them for export.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mindpal.backend.types import eq
from mindpal.errors import validation_choice
from mindpal.models import SessionReport
from mindpal.notify import NoticeLevel
from mindpal.resources.base import RemoteResource, ResourceContext
from mindpal.utils.atomic_write import atomic_write_text

logger = logging.getLogger(__name__)

REPORT_LIMIT = 20
SESSION_EVENT_TYPES = (
    "session_start",
    "session_end",
    "interaction",
    "mood_change",
    "engagement_peak",
    "technical_issue",
)
EXPORT_FORMATS = ("json", "text")

TEXT_TEMPLATE = """MindPal Video Session Report
Generated: {generated}

Session Details:
- Duration: {r.report_data.duration_formatted}
- Quality: {r.insights.session_quality}
- Engagement Level: {r.insights.engagement_level}
- Technical Issues: {r.insights.technical_issues}
- Interactions: {r.insights.interaction_count}

Mood Analysis:
- Overall Sentiment: {r.mood_analysis.overall_sentiment}
- Stress Indicators: {r.mood_analysis.stress_indicators}
- Emotional State: {r.mood_analysis.emotional_state}
- Confidence Score: {confidence:.0f}%

Engagement Metrics:
- Total Interactions: {r.engagement_metrics.total_interactions}
- Session Completion: {completion:g}%
- User Satisfaction: {satisfaction:g}/5
- AI Response Quality: {quality:g}/5

Recommendations:
{recommendations}

Generated by MindPal AI Companion"""


@dataclass(frozen=True)
class ReportExport:
    filename: str
    content: str


def export_report(report: SessionReport, format: str = "json") -> ReportExport:
    """Render a report as pretty JSON or as a plain-text summary."""
    if format not in EXPORT_FORMATS:
        raise validation_choice("format", format, EXPORT_FORMATS)
    if format == "json":
        return ReportExport(
            filename=f"mindpal-session-report-{report.id}.json",
            content=report.model_dump_json(indent=2),
        )
    metrics = report.engagement_metrics
    content = TEXT_TEMPLATE.format(
        r=report,
        generated=report.generated_at.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
        confidence=report.mood_analysis.confidence_score * 100,
        completion=metrics.session_completion_rate,
        satisfaction=metrics.user_satisfaction_score,
        quality=metrics.ai_response_quality,
        recommendations="\n".join(f"{i}. {rec}" for i, rec in enumerate(report.recommendations, 1)),
    )
    return ReportExport(filename=f"mindpal-session-report-{report.id}.txt", content=content)


class SessionReportStore(RemoteResource):
    """The signed-in user's most recent session reports."""

    table = "session_reports"

    def __init__(self, context: ResourceContext) -> None:
        super().__init__(context)
        self.reports: tuple[SessionReport, ...] = ()
        self.current_report: SessionReport | None = None
        self.generating = False

    def reset(self) -> None:
        self.reports = ()
        self.current_report = None
        self.generating = False

    def select_report(self, report: SessionReport | None) -> None:
        self.current_report = report

    async def load(self) -> bool:
        user = self.user

        async def fetch():
            return await self._client.select(
                self.table,
                filters=[eq("user_id", user.id)],
                order="generated_at",
                ascending=False,
                limit=REPORT_LIMIT,
            )

        def apply(rows: Any) -> None:
            self.reports = tuple(SessionReport.model_validate(row) for row in rows or [])

        return await self._load("load", fetch, apply, error_message="Failed to load session reports")

    async def get_report(self, report_id: str) -> SessionReport | None:
        """Fetch one report; failures are logged but not surfaced."""
        user = self.user
        if user is None or not self._ctx.monitor.state.can_reach_backend:
            return None
        try:
            row = await self._attempt(
                "get",
                lambda: self._client.select(
                    self.table,
                    filters=[eq("id", report_id), eq("user_id", user.id)],
                    maybe_single=True,
                ),
            )
        except Exception as e:
            await self._handle_failure("get", e, None)
            return None
        return SessionReport.model_validate(row) if row else None

    async def generate_report(self, video_session_id: str) -> SessionReport | None:
        """Generate a report for a finished video session and select it.

        Generating and fetching the new report form one action with a
        single error notice.

        Raises:
            ConnectivityError: Offline or backend unreachable; not attempted.
        """
        user = self._require_user()
        self._ctx.monitor.require_connection("generate session report")

        self.generating = True
        try:
            report_id = await self._attempt(
                "generate",
                lambda: self._client.rpc(
                    "generate_session_report",
                    {"p_user_id": user.id, "p_video_session_id": video_session_id},
                ),
            )
            row = None
            if report_id:
                row = await self._attempt(
                    "generate.fetch",
                    lambda: self._client.select(self.table, filters=[eq("id", report_id)], maybe_single=True),
                )
        except Exception as e:
            await self._handle_failure("generate", e, "Failed to generate session report")
            return None
        finally:
            self.generating = False

        if row is None:
            logger.warning("No report returned for video session %s", video_session_id)
            return None
        report = SessionReport.model_validate(row)
        if self._owns(user.id):
            self.reports = (report, *self.reports)
            self.current_report = report
        self._notify(NoticeLevel.SUCCESS, "Session report generated successfully!")
        return report

    async def track_event(
        self,
        video_session_id: str,
        event_type: str,
        event_data: dict[str, Any] | None = None,
    ) -> bool:
        """Record an analytics event; failures never reach the user."""
        if event_type not in SESSION_EVENT_TYPES:
            raise validation_choice("event_type", event_type, SESSION_EVENT_TYPES)
        user = self.user
        if user is None or not self._ctx.monitor.state.can_reach_backend:
            return False
        try:
            await self._attempt(
                "track_event",
                lambda: self._client.rpc(
                    "track_session_event",
                    {
                        "p_user_id": user.id,
                        "p_video_session_id": video_session_id,
                        "p_event_type": event_type,
                        "p_event_data": event_data or {},
                    },
                ),
            )
        except Exception as e:
            if not await self._ctx.guard.classify_and_handle(e):
                logger.warning(f"Failed to track session event {event_type}: {e}")
            return False
        return True

    def save_report(self, report: SessionReport, directory: Path, format: str = "json") -> Path | None:
        """Write an export of ``report`` into ``directory``."""
        export = export_report(report, format)
        path = Path(directory) / export.filename
        try:
            atomic_write_text(path, export.content)
        except OSError as e:
            logger.error(f"Error exporting report {report.id}: {e}")
            self._notify(NoticeLevel.ERROR, "Failed to export report")
            return None
        self._notify(NoticeLevel.SUCCESS, f"Report exported as {format.upper()}")
        return path
