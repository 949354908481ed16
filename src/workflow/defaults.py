"""Canonical default workflow.

The standard project pipeline: offer, offer approval, DP invoice, DP
approval, administrative files, survey, parallel design uploads by Arsitek,
Struktur and MEP, sidang scheduling, sidang outcome, post-sidang revision.

The step table is kept in the persisted (camelCase) shape so it can be
written straight into a store. ``default_steps()`` always returns a fresh
copy; nothing outside this module ever holds a reference to the table.
"""

import copy
from typing import Any, Dict, Final, List

from src.workflow.models import Workflow, WorkflowStep

DEFAULT_WORKFLOW_ID: Final[str] = "default_standard_workflow"
DEFAULT_WORKFLOW_NAME: Final[str] = "Standard Project Workflow"
DEFAULT_WORKFLOW_DESCRIPTION: Final[str] = "The standard, multi-stage project workflow."

DESIGN_DIVISIONS: Final[list[str]] = ["Arsitek", "Struktur", "MEP"]

_DEFAULT_STEPS: Final[List[Dict[str, Any]]] = [
    {
        "stepName": "Offer Submission",
        "status": "Pending Offer",
        "assignedDivision": "Admin Proyek",
        "progress": 10,
        "nextActionDescription": "Unggah Dokumen Penawaran",
        "transitions": {
            "submitted": {
                "targetStatus": "Pending Approval",
                "targetAssignedDivision": "Owner",
                "targetNextActionDescription": "Setujui Dokumen Penawaran",
                "targetProgress": 20,
                "notification": {
                    "division": "Owner",
                    "message": "Penawaran untuk proyek '{projectName}' telah diajukan oleh {actorUsername} dan menunggu persetujuan Anda.",
                },
            },
        },
    },
    {
        "stepName": "Offer Approval",
        "status": "Pending Approval",
        "assignedDivision": "Owner",
        "progress": 20,
        "nextActionDescription": "Tinjau dan setujui/tolak penawaran",
        "transitions": {
            "approved": {
                "targetStatus": "Pending DP Invoice",
                "targetAssignedDivision": "General Admin",
                "targetNextActionDescription": "Buat Faktur DP",
                "targetProgress": 25,
                "notification": {
                    "division": "General Admin",
                    "message": "Penawaran untuk proyek '{projectName}' telah disetujui. Mohon buat faktur DP.",
                },
            },
            "rejected": {
                "targetStatus": "Canceled",
                "targetAssignedDivision": "",
                "targetNextActionDescription": None,
                "targetProgress": 20,
                "notification": {
                    "division": "Admin Proyek",
                    "message": "Penawaran untuk proyek '{projectName}' ditolak oleh Owner.",
                },
            },
            "revise_offer": {
                "targetStatus": "Pending Offer",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Revisi Dokumen Penawaran",
                "targetProgress": 10,
                "notification": {
                    "division": "Admin Proyek",
                    "message": "Owner meminta revisi penawaran untuk proyek '{projectName}'. Catatan: {reasonNote}",
                },
            },
        },
    },
    {
        "stepName": "DP Invoice Submission",
        "status": "Pending DP Invoice",
        "assignedDivision": "General Admin",
        "progress": 25,
        "nextActionDescription": "Unggah Faktur DP",
        "transitions": {
            "submitted": {
                "targetStatus": "Pending Approval",
                "targetAssignedDivision": "Owner",
                "targetNextActionDescription": "Setujui Faktur DP",
                "targetProgress": 30,
                "notification": {
                    "division": "Owner",
                    "message": "Faktur DP untuk proyek '{projectName}' telah diajukan dan menunggu persetujuan Anda.",
                },
            },
        },
    },
    {
        # Same status as Offer Approval; progress 30 marks the DP approval
        "stepName": "DP Invoice Approval",
        "status": "Pending Approval",
        "assignedDivision": "Owner",
        "progress": 30,
        "nextActionDescription": "Tinjau dan setujui/tolak Faktur DP",
        "transitions": {
            "approved": {
                "targetStatus": "Pending Admin Files",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Unggah Berkas Administrasi",
                "targetProgress": 40,
                "notification": {
                    "division": "Admin Proyek",
                    "message": "Faktur DP untuk proyek '{projectName}' telah disetujui. Mohon unggah berkas administrasi.",
                },
            },
            "revise_dp": {
                "targetStatus": "Pending DP Invoice",
                "targetAssignedDivision": "General Admin",
                "targetNextActionDescription": "Revisi dan Unggah Ulang Faktur DP",
                "targetProgress": 25,
                "notification": {
                    "division": "General Admin",
                    "message": "Faktur DP untuk proyek '{projectName}' perlu direvisi. Catatan: {reasonNote}",
                },
            },
            "rejected": {
                "targetStatus": "Canceled",
                "targetAssignedDivision": "",
                "targetNextActionDescription": None,
                "targetProgress": 30,
                "notification": {
                    "division": ["Admin Proyek", "General Admin"],
                    "message": "Faktur DP untuk proyek '{projectName}' ditolak oleh Owner. Proyek dibatalkan.",
                },
            },
        },
    },
    {
        "stepName": "Admin Files Submission",
        "status": "Pending Admin Files",
        "assignedDivision": "Admin Proyek",
        "progress": 40,
        "nextActionDescription": "Unggah Berkas Administrasi",
        "transitions": {
            "submitted": {
                "targetStatus": "Pending Survey Details",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Input Jadwal Survei",
                "targetProgress": 45,
                "notification": {
                    "division": "Admin Proyek",
                    "message": "Berkas administrasi untuk '{projectName}' lengkap. Mohon input jadwal survei.",
                },
            },
        },
    },
    {
        "stepName": "Survey Scheduling",
        "status": "Pending Survey Details",
        "assignedDivision": "Admin Proyek",
        "progress": 45,
        "nextActionDescription": "Input Jadwal Survei",
        "transitions": {
            "submitted": {
                "targetStatus": "Pending Parallel Design Uploads",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Konfirmasi berkas Arsitek, Struktur, dan MEP",
                "targetProgress": 50,
                "notification": {
                    "division": DESIGN_DIVISIONS,
                    "message": "Survei untuk proyek '{projectName}' dijadwalkan pada {surveyDate}. Mohon siapkan dan unggah berkas desain Anda.",
                },
            },
        },
    },
    {
        # Arsitek, Struktur and MEP upload in parallel; Admin Proyek confirms
        "stepName": "Parallel Design Uploads",
        "status": "Pending Parallel Design Uploads",
        "assignedDivision": "Admin Proyek",
        "progress": 50,
        "nextActionDescription": "Konfirmasi berkas Arsitek, Struktur, dan MEP",
        "transitions": {
            "all_files_confirmed": {
                "targetStatus": "Pending Scheduling",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Jadwalkan Sidang",
                "targetProgress": 90,
                "notification": {
                    "division": ["Admin Proyek", "Owner"],
                    "message": "Semua berkas teknis untuk '{projectName}' telah dikonfirmasi oleh {actorUsername}. Mohon jadwalkan sidang.",
                },
            },
            "reschedule_survey": {
                "targetStatus": "Pending Parallel Design Uploads",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Konfirmasi berkas Arsitek, Struktur, dan MEP",
                "targetProgress": 50,
                "notification": {
                    "division": DESIGN_DIVISIONS,
                    "message": "Jadwal survei untuk proyek '{projectName}' diubah menjadi {surveyDate}.",
                },
            },
        },
    },
    {
        "stepName": "Sidang Scheduling",
        "status": "Pending Scheduling",
        "assignedDivision": "Admin Proyek",
        "progress": 90,
        "nextActionDescription": "Jadwalkan Sidang",
        "transitions": {
            "scheduled": {
                "targetStatus": "Scheduled",
                "targetAssignedDivision": "Owner",
                "targetNextActionDescription": "Nyatakan Hasil Sidang",
                "targetProgress": 95,
                "notification": {
                    "division": "Owner",
                    "message": "Sidang untuk proyek '{projectName}' telah dijadwalkan. Mohon nyatakan hasilnya setelah selesai.",
                },
            },
        },
    },
    {
        "stepName": "Sidang Outcome Declaration",
        "status": "Scheduled",
        "assignedDivision": "Owner",
        "progress": 95,
        "nextActionDescription": "Nyatakan Hasil Sidang (Sukses/Revisi/Batal)",
        "transitions": {
            "completed": {
                "targetStatus": "Completed",
                "targetAssignedDivision": "",
                "targetNextActionDescription": None,
                "targetProgress": 100,
                "notification": None,
            },
            "revise_after_sidang": {
                "targetStatus": "Pending Post-Sidang Revision",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Lakukan Revisi Pasca Sidang",
                "targetProgress": 97,
                "notification": {
                    "division": "Admin Proyek",
                    "message": "Proyek '{projectName}' memerlukan revisi setelah sidang. Mohon perbarui berkas yang diperlukan.",
                },
            },
            "canceled_after_sidang": {
                "targetStatus": "Canceled",
                "targetAssignedDivision": "",
                "targetNextActionDescription": None,
                "targetProgress": 95,
                "notification": None,
            },
            "reschedule_sidang": {
                "targetStatus": "Pending Scheduling",
                "targetAssignedDivision": "Admin Proyek",
                "targetNextActionDescription": "Jadwalkan Ulang Sidang",
                "targetProgress": 90,
                "notification": {
                    "division": "Admin Proyek",
                    "message": "Owner meminta sidang proyek '{projectName}' dijadwalkan ulang. Catatan: {reasonNote}",
                },
            },
        },
    },
    {
        "stepName": "Post-Sidang Revision",
        "status": "Pending Post-Sidang Revision",
        "assignedDivision": "Admin Proyek",
        "progress": 97,
        "nextActionDescription": "Lakukan Revisi Pasca Sidang",
        "transitions": {
            "revision_completed_and_finish": {
                "targetStatus": "Completed",
                "targetAssignedDivision": "",
                "targetNextActionDescription": None,
                "targetProgress": 100,
                "notification": {
                    "division": "Owner",
                    "message": "Revisi pasca sidang untuk proyek '{projectName}' telah selesai. Proyek dinyatakan selesai.",
                },
            },
        },
    },
    {
        "stepName": "Project Completed",
        "status": "Completed",
        "assignedDivision": "",
        "progress": 100,
        "nextActionDescription": None,
        "transitions": None,
    },
    {
        "stepName": "Project Canceled",
        "status": "Canceled",
        "assignedDivision": "",
        "progress": 0,
        "nextActionDescription": None,
        "transitions": None,
    },
]


def default_step_documents() -> List[Dict[str, Any]]:
    """Fresh copy of the default step table in persisted form."""
    return copy.deepcopy(_DEFAULT_STEPS)


def default_steps() -> List[WorkflowStep]:
    """Fresh, unshared list of the default steps as models."""
    return [WorkflowStep.model_validate(doc) for doc in default_step_documents()]


def build_default_workflow() -> Workflow:
    """The default workflow as it is seeded into an empty catalog."""
    return Workflow(
        id=DEFAULT_WORKFLOW_ID,
        name=DEFAULT_WORKFLOW_NAME,
        description=DEFAULT_WORKFLOW_DESCRIPTION,
        protected=True,
        steps=default_steps(),
    )
