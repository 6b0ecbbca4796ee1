"""
Human health-worker directory.

Read-only lookup of the workers an escalated session can be handed to.
Workers are seeded in code here; a deployment would load them from its
own roster.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from triage.languages import Language


@dataclass(frozen=True)
class HealthWorker:
    id: str
    name: str
    phone_number: str
    languages: tuple
    specialization: tuple = ()
    email: Optional[str] = None
    state: str = ""
    district: str = ""
    current_load: int = 0
    max_concurrent_chats: int = 5
    rating: float = 0.0
    is_online: bool = False

    def speaks(self, language: Language) -> bool:
        return language in self.languages

    @property
    def has_capacity(self) -> bool:
        return self.current_load < self.max_concurrent_chats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone_number": self.phone_number,
            "languages": [lang.value for lang in self.languages],
            "specialization": list(self.specialization),
            "email": self.email,
            "state": self.state,
            "district": self.district,
            "current_load": self.current_load,
            "max_concurrent_chats": self.max_concurrent_chats,
            "rating": self.rating,
            "is_online": self.is_online,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthWorker":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            phone_number=data.get("phone_number", ""),
            languages=tuple(Language.from_code(code) for code in data.get("languages", [])),
            specialization=tuple(data.get("specialization", [])),
            email=data.get("email"),
            state=data.get("state", ""),
            district=data.get("district", ""),
            current_load=int(data.get("current_load", 0)),
            max_concurrent_chats=int(data.get("max_concurrent_chats", 5)),
            rating=float(data.get("rating", 0.0)),
            is_online=bool(data.get("is_online", False)),
        )


SAMPLE_WORKERS: List[HealthWorker] = [
    HealthWorker(
        id="1",
        name="Dr. Priya Sharma",
        phone_number="+91-9876543210",
        email="priya.sharma@health.gov.in",
        specialization=("general_medicine", "pediatrics"),
        languages=(Language.ENGLISH, Language.HINDI, Language.TELUGU),
        state="Telangana",
        district="Hyderabad",
        current_load=2,
        max_concurrent_chats=5,
        rating=4.8,
        is_online=True,
    ),
]


@dataclass
class WorkerDirectory:
    """Read-only queries over a fixed roster."""
    workers: List[HealthWorker] = field(default_factory=lambda: list(SAMPLE_WORKERS))

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "WorkerDirectory":
        return cls([HealthWorker.from_dict(r) for r in records])

    def get(self, worker_id: str) -> Optional[HealthWorker]:
        for worker in self.workers:
            if worker.id == worker_id:
                return worker
        return None

    def online(self) -> List[HealthWorker]:
        return [w for w in self.workers if w.is_online]

    def find_available(self, language: Language) -> Optional[HealthWorker]:
        """First online worker who speaks ``language`` and is under capacity."""
        for worker in self.workers:
            if worker.is_online and worker.has_capacity and worker.speaks(language):
                return worker
        return None
