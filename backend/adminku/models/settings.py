from __future__ import annotations

from ..extensions import db


class ConfigEntry(db.Model):
    """Process-wide key/value configuration (e.g. max_category_depth)."""
    __tablename__ = "config"

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<ConfigEntry {self.key}={self.value!r}>"

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value}
