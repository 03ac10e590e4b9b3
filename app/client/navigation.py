from dataclasses import dataclass
from enum import Enum
from typing import Optional


class View(str, Enum):
    DASHBOARD = "dashboard"
    ADD_PATIENT = "add-patient"
    EDIT_PATIENT = "edit-patient"
    PATIENTS_LIST = "patients-list"
    PATIENT_DETAILS = "patient-details"


# Views that operate on one selected patient
PATIENT_VIEWS = {View.EDIT_PATIENT, View.PATIENT_DETAILS}


@dataclass(frozen=True)
class ViewState:
    view: View = View.DASHBOARD
    patient_id: Optional[str] = None

    @property
    def is_editing(self) -> bool:
        return self.view == View.EDIT_PATIENT


def navigate(page: str, patient_id: Optional[str] = None) -> ViewState:
    """Switch pages. Unknown pages fall back to the dashboard; the selected id is always replaced."""
    try:
        view = View(page)
    except ValueError:
        return ViewState()
    if view not in PATIENT_VIEWS:
        return ViewState(view=view, patient_id=patient_id)
    if not patient_id:
        raise ValueError(f"{view.value} requires a patient id")
    return ViewState(view=view, patient_id=patient_id)
