from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text
from database import Base


class StateEntry(Base):
    """One key of the ledger world state; `value` is the full JSON document."""
    __tablename__ = "world_state"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    # set to 1 on insert and bumped by every UPDATE, which only matches the version loaded
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
