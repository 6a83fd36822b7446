# models/user.py
from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    id: int
    name: str
    addr: str
    email: str
    level: int
    create_time: float

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            name=row["name"],
            addr=row["addr"],
            email=row["email"],
            level=row["level"],
            create_time=row["create_time"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "addr": self.addr,
            "email": self.email,
            "level": self.level,
            "createTime": self.create_time,
        }
