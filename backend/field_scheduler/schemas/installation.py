import datetime as dt
from pydantic import BaseModel, Field

from ..models.assignment import Priority
from ..models.scheduling import InstallationStatus


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    coordinates: Coordinates | None = None


class Installation(BaseModel):
    """Монтаж - выездная работа, которую нужно укомплектовать командой"""
    id: str
    customer_name: str = ""
    address: Address = Field(default_factory=Address)
    scheduled_date: dt.date
    scheduled_time: dt.time
    duration: int = Field(gt=0)  # Минуты
    priority: Priority = Priority.MEDIUM
    required_skills: list[str] = []
    deadline: dt.date | None = None
    preferred_team_member_ids: list[str] = []
    status: InstallationStatus = InstallationStatus.PENDING
    notes: str | None = None

    @property
    def start_minutes(self) -> int:
        return self.scheduled_time.hour * 60 + self.scheduled_time.minute

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration
