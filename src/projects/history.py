"""Audit-trail wording for project workflow actions."""

from typing import Optional

from src.projects.models import Project, ScheduleDetails, SurveyDetails, WorkflowHistoryEntry

SIDANG_OUTCOMES = {
    "completed": "completed",
    "revise_after_sidang": "revise",
    "canceled_after_sidang": "canceled",
}

OFFER_APPROVAL_KEY = ("Pending Approval", 20)


def describe_action(
    project: Project,
    action: str,
    actor_username: str,
    actor_role: str,
    schedule_details: Optional[ScheduleDetails] = None,
    survey_details: Optional[SurveyDetails] = None,
) -> str:
    """Human-readable history text for ``action`` taken on ``project``.

    ``project`` is the state before the action is applied.
    """
    actor = f"{actor_username} ({actor_role})"
    current = project.next_action

    if action == "scheduled" and schedule_details:
        return f"{actor} scheduled Sidang on {schedule_details.date} at {schedule_details.time}"
    if action == "reschedule_survey" and survey_details:
        return f"{actor} rescheduled Survey to {survey_details.date} at {survey_details.time}"
    if action == "submitted" and survey_details:
        return f"{actor} submitted Survey Details for {survey_details.date} at {survey_details.time}"
    if action == "approved":
        return f"{actor} approved: {current or 'current step'}"
    if action == "rejected" and (project.status, project.progress) == OFFER_APPROVAL_KEY:
        return f"{actor} canceled project at offer stage: {current or 'penawaran'}"
    if action == "rejected":
        return f"{actor} rejected: {current or 'current step'}"
    if action == "revise_offer":
        return f"{actor} requested revision for offer: {current or 'penawaran'}"
    if action == "revise_dp":
        return f"{actor} requested revision for DP invoice: {current or 'faktur DP'}"
    if action in SIDANG_OUTCOMES:
        return f"{actor} declared Sidang outcome as: {SIDANG_OUTCOMES[action]}"
    if action == "reschedule_sidang":
        return f"{actor} requested Sidang to be rescheduled"
    if action == "all_files_confirmed":
        return f"{actor} confirmed all design files"
    if action == "revision_completed_and_finish":
        return f"{actor} completed post-sidang revisions and finalized the project."
    return f'{actor} {action} for "{current or "progress"}"'


def describe_note(
    action: str,
    note: Optional[str],
    schedule_details: Optional[ScheduleDetails] = None,
    survey_details: Optional[SurveyDetails] = None,
) -> Optional[str]:
    """Note stored with the history entry; schedule/survey details are folded in."""
    suffix = f"Note: {note}" if note else ""
    if action == "scheduled" and schedule_details:
        return f"Location: {schedule_details.location}. {suffix}".strip()
    if action in ("submitted", "reschedule_survey") and survey_details and survey_details.description:
        return f"Survey Description: {survey_details.description}. {suffix}".strip()
    return note


def history_entry(
    project: Project,
    action: str,
    actor_username: str,
    actor_role: str,
    note: Optional[str] = None,
    schedule_details: Optional[ScheduleDetails] = None,
    survey_details: Optional[SurveyDetails] = None,
) -> WorkflowHistoryEntry:
    return WorkflowHistoryEntry(
        division=actor_role,
        action=describe_action(
            project, action, actor_username, actor_role, schedule_details, survey_details
        ),
        note=describe_note(action, note, schedule_details, survey_details),
    )
