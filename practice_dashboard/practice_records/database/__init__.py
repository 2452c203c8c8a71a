from .connection import get_connection, init_database
from .patient_repository import PatientRepository
from .practice_repository import PracticeRepository
from .clinical_repository import ClinicalRepository
from .communication_repository import CommunicationRepository
from .session_repository import SessionRepository

__all__ = [
    "get_connection",
    "init_database",
    "PatientRepository",
    "PracticeRepository",
    "ClinicalRepository",
    "CommunicationRepository",
    "SessionRepository",
]
