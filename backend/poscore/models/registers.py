from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z


class Terminal(db.Model):
    """
    Physical POS terminal.

    WHY: Every sale is rung up on a terminal, and transaction numbers are
    sequenced per terminal (T{terminal_number}-{sequence}).

    DESIGN: Terminals are persistent (not deleted when inactive).
    Inactive terminals cannot ring new sales.
    """
    __tablename__ = "terminals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    terminal_number = db.Column(db.Integer, nullable=False, unique=True)
    name = db.Column(db.String(100), nullable=False, unique=True)  # Display name
    location = db.Column(db.String(255), nullable=True)  # Physical location in store

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "terminal_number": self.terminal_number,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
