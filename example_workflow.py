"""Example walking a project through the default workflow."""

import os
import tempfile

from src.projects import SurveyDetails, build_services
from src.utils.config import reset_settings
from src.utils.logging_config import get_logger, setup_logging
from src.workflow.errors import InvalidTransitionError

# Set up environment for example
os.environ["APP_NAME"] = "project-workflow-engine"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "INFO"
os.environ["WORKFLOW_STORE_BACKEND"] = "json"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="workflow-example-")

reset_settings()
setup_logging(use_json=False, force_reconfigure=True)
logger = get_logger(__name__)

services = build_services()
projects = services.projects

print("=== Example 1: Create a project ===")
project = projects.create_project("Gedung Serbaguna", created_by="admin_proyek_1")
print(f"{project.title}: {project.status} ({project.progress}%) -> {project.assigned_division}")
print(f"Available actions: {projects.available_actions(project.id)}")

print("\n=== Example 2: Advance through offer and DP approval ===")
for action, role, user in [
    ("submitted", "Admin Proyek", "budi"),
    ("approved", "Owner", "pak_owner"),
    ("submitted", "General Admin", "sari"),
    ("approved", "Owner", "pak_owner"),
    ("submitted", "Admin Proyek", "budi"),
]:
    outcome = projects.advance_project(project.id, action, role, user)
    print(f"{action:>10}: {outcome.project.status} ({outcome.project.progress}%)")

print("\n=== Example 3: Survey notifies the design divisions ===")
outcome = projects.advance_project(
    project.id,
    "submitted",
    "Admin Proyek",
    "budi",
    survey_details=SurveyDetails(date="2024-05-10", time="10:30", description="Cek lahan"),
)
for notification in outcome.notifications:
    print(f"  -> {notification.division}: {notification.message}")

print("\n=== Example 4: Design divisions finish their uploads ===")
for division in ("Arsitek", "Struktur", "MEP"):
    project = projects.mark_parallel_upload_complete(project.id, division, f"{division.lower()}_1")
print(f"Completed by: {project.parallel_uploads_completed_by}")
for notification in projects.notifier.for_division("Admin Proyek")[:3]:
    print(f"  Admin Proyek inbox: {notification.message}")

print("\n=== Example 5: Undeclared action is rejected ===")
try:
    projects.advance_project(project.id, "approved", "Owner", "pak_owner")
except InvalidTransitionError as e:
    logger.warning("Rejected: %s (available: %s)", e, e.available_actions)

print(f"\nData written to {os.environ['DATA_DIR']}")
