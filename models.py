import uuid
import datetime as dt
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Date, Numeric, String, ForeignKey
from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Plot(Base):
    __tablename__ = "plots"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    area: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    planting_start: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    harvests: Mapped[list["Harvest"]] = relationship(
        "Harvest", back_populates="plot", cascade="all, delete-orphan"
    )


class Harvest(Base):
    __tablename__ = "harvests"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    plot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("plots.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    weight_kg: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    quality: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    plot: Mapped[Plot] = relationship("Plot", back_populates="harvests")
