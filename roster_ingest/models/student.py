from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

"""Student record models exchanged with a RecordStore.

NewStudent carries the plain initial credential; stores are responsible for
hashing it. StudentRecord never carries a credential, so it can be returned
in the ingestion payload as-is.
"""

__all__ = [
    "NewStudent",
    "StudentRecord",
]


@dataclass(frozen=True)
class NewStudent:
    index_number: str
    full_name: str
    email: str
    phone_number: str | None
    password: str

    def __repr__(self) -> str:
        return (
            f"NewStudent(index_number={self.index_number!r}, full_name={self.full_name!r}, "
            f"email={self.email!r}, phone_number={self.phone_number!r}, password='***')"
        )


@dataclass(frozen=True)
class StudentRecord:
    id: str
    index_number: str
    full_name: str
    email: str | None
    phone_number: str | None = None
    profile_picture: str | None = None
    has_voted: bool = False
    created_at: datetime | None = None

    def with_picture(self, url: str) -> StudentRecord:
        return replace(self, profile_picture=url)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "indexNumber": self.index_number,
            "fullName": self.full_name,
            "email": self.email,
            "phoneNumber": self.phone_number,
            "profilePicture": self.profile_picture,
            "hasVoted": self.has_voted,
            "createdAt": self.created_at.isoformat().replace("+00:00", "Z") if self.created_at else None,
        }
