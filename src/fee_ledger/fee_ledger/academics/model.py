from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class AcademicSession:
    session_id: int
    org_id: int
    name: str
    start_date: date
    end_date: date


@dataclass(frozen=True)
class Batch:
    batch_id: int
    org_id: int
    branch_id: int
    name: str


@dataclass(frozen=True)
class Student:
    student_id: int
    org_id: int
    branch_id: int
    batch_id: int | None
    first_name: str
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
