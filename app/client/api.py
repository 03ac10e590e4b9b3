import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.config import settings
from app.models.patient import Patient

PatientPayload = Dict[str, Any]


class PatientsAPI:
    """HTTP client for the patients endpoints, as used by the frontend"""

    def __init__(self, client: Optional[httpx.Client] = None, base_url: Optional[str] = None):
        self.client = client or httpx.Client(base_url=base_url or settings.API_BASE_URL)

    @staticmethod
    def _form(patient_data: PatientPayload) -> Tuple[Dict[str, str], Optional[Dict[str, Any]]]:
        fields = {
            field: str(patient_data[field])
            for field in ("name", "age", "diagnosis", "operation", "details")
            if patient_data.get(field) is not None
        }
        fields["relatives"] = json.dumps(patient_data.get("relatives") or [])
        picture = patient_data.get("picture")
        files = {"picture": picture} if picture else None
        return fields, files

    def get_all_patients(self, **params) -> Tuple[List[Patient], Dict[str, int]]:
        response = self.client.get("/api/patients/", params=params)
        response.raise_for_status()
        body = response.json()
        return [Patient.model_validate(p) for p in body["data"]], body["pagination"]

    def get_patient_by_id(self, patient_id: str) -> Patient:
        response = self.client.get(f"/api/patients/{patient_id}")
        response.raise_for_status()
        return Patient.model_validate(response.json())

    def search_patients(self, q: str) -> List[PatientPayload]:
        # Search results are projected and carry no details or picture
        response = self.client.get("/api/patients/search", params={"q": q})
        response.raise_for_status()
        return response.json()

    def get_stats(self) -> Dict[str, int]:
        response = self.client.get("/api/patients/stats")
        response.raise_for_status()
        return response.json()

    def add_patient(self, patient_data: PatientPayload) -> Patient:
        """patient_data["picture"] may be a (filename, bytes, content_type) tuple"""
        fields, files = self._form(patient_data)
        response = self.client.post("/api/patients/", data=fields, files=files)
        response.raise_for_status()
        return Patient.model_validate(response.json()["data"])

    def update_patient(self, patient_id: str, patient_data: PatientPayload) -> Patient:
        fields, files = self._form(patient_data)
        response = self.client.put(f"/api/patients/{patient_id}", data=fields, files=files)
        response.raise_for_status()
        return Patient.model_validate(response.json()["data"])

    def update_picture(self, patient_id: str, picture) -> str:
        response = self.client.patch(f"/api/patients/{patient_id}/picture", files={"picture": picture})
        response.raise_for_status()
        return response.json()["picture"]

    def delete_patient(self, patient_id: str) -> str:
        response = self.client.delete(f"/api/patients/{patient_id}")
        response.raise_for_status()
        return response.json()["deletedId"]
