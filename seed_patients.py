import asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from datetime import datetime
from typing import List, Dict
from app.config import settings
from app.utils.validators import build_patient_create
import logging

# Logging configuration
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

class PatientSeeder:
    def __init__(self):
        self.client = AsyncIOMotorClient(settings.MONGODB_URI)
        self.db = self.client.get_database(settings.MONGODB_NAME)

    def _get_default_patients(self) -> List[Dict]:
        """Demo patients, run through the same validation as the API"""
        raw_patients = [
            {
                "name": "Maria Lopez",
                "age": "54",
                "diagnosis": "Acute appendicitis",
                "operation": "Laparoscopic appendectomy",
                "details": "Recovered without complications, discharged on day two.",
                "relatives": ["+1 555  010 2030", "555-010-4455"]
            },
            {
                "name": "John Carter",
                "age": "67",
                "diagnosis": "Severe osteoarthritis of the right knee",
                "operation": "Total knee replacement",
                "details": "Physiotherapy scheduled three times a week.",
                "relatives": ["+44 20 7946 0958"]
            },
            {
                "name": "Aiko Tanaka",
                "age": "31",
                "diagnosis": "Symptomatic gallstones",
                "operation": "Cholecystectomy",
                "details": "Low fat diet recommended for six weeks.",
                "relatives": []
            }
        ]
        now = datetime.utcnow()
        patients = []
        for raw in raw_patients:
            patient = build_patient_create(raw)
            patient.update({"picture": None, "createdAt": now, "updatedAt": now})
            patients.append(patient)
        return patients

    async def _patient_exists(self, name: str) -> bool:
        return await self.db.patients.find_one({"name": name}) is not None

    async def seed_patients(self):
        try:
            for patient in self._get_default_patients():
                if not await self._patient_exists(patient["name"]):
                    await self.db.patients.insert_one(patient)
                    logger.info(f"Patient created: {patient['name']}")
                else:
                    logger.warning(f"Patient {patient['name']} already exists, skipping")

            logger.info("Seeding finished")
        except Exception as e:
            logger.error(f"Error while seeding: {str(e)}")
            raise
        finally:
            self.client.close()

async def main():
    seeder = PatientSeeder()
    await seeder.seed_patients()

if __name__ == "__main__":
    asyncio.run(main())
