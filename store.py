from contextlib import contextmanager
from typing import List

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from errors import ConstraintViolation, NotFound
from logging_setup import get_logger
from models import Harvest, Plot
from schemas import CreateHarvest, CreatePlot, UpdatePlot
from utils import to_number

log = get_logger("store")

PLOT_NOT_FOUND = "plot not found"


@contextmanager
def _constraints(db: Session, what: str):
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log.warning("%s rejected by constraint: %s", what, e.orig)
        raise ConstraintViolation(f"{what} violates a uniqueness or reference constraint") from e


# ---------- plots ----------
def create_plot(db: Session, body: CreatePlot) -> Plot:
    plot = Plot(name=body.name, area=body.area, planting_start=body.planting_start)
    with _constraints(db, "plot"):
        db.add(plot)
    db.refresh(plot)
    log.info("plot %s created (%s)", plot.id, plot.name)
    return plot


def list_plots(db: Session) -> List[Plot]:
    return list(db.scalars(select(Plot).order_by(Plot.name.asc())).all())


def get_plot(db: Session, plot_id: str) -> Plot:
    plot = db.get(Plot, plot_id)
    if not plot:
        raise NotFound(PLOT_NOT_FOUND)
    return plot


def update_plot(db: Session, plot_id: str, body: UpdatePlot) -> Plot:
    changes = body.model_dump(exclude_unset=True)
    if changes:
        with _constraints(db, "plot"):
            db.execute(update(Plot).where(Plot.id == plot_id).values(**changes))
    db.expire_all()
    return get_plot(db, plot_id)


def delete_plot(db: Session, plot_id: str) -> None:
    plot = get_plot(db, plot_id)
    db.delete(plot)
    db.commit()
    log.info("plot %s deleted with its harvests", plot_id)


def summary(db: Session, plot_id: str) -> dict:
    """Total harvested weight for a plot; zero when it has no harvests."""
    total = db.scalar(
        select(func.coalesce(func.sum(Harvest.weight_kg), 0)).where(Harvest.plot_id == plot_id)
    )
    return {"plot_id": plot_id, "total_kg": to_number(total)}


# ---------- harvests ----------
def create_harvest(db: Session, body: CreateHarvest) -> Harvest:
    plot = db.get(Plot, body.plot_id)
    if not plot:
        raise NotFound(PLOT_NOT_FOUND)
    harvest = Harvest(plot=plot, date=body.date, weight_kg=body.weight_kg, quality=body.quality)
    with _constraints(db, "harvest"):
        db.add(harvest)
    db.refresh(harvest)
    log.info("harvest %s recorded for plot %s (%s kg)", harvest.id, plot.id, harvest.weight_kg)
    return harvest


def _harvests_newest_first():
    # ties on date come back in whatever order the database returns them
    return select(Harvest).options(joinedload(Harvest.plot)).order_by(Harvest.date.desc())


def list_harvests(db: Session) -> List[Harvest]:
    return list(db.scalars(_harvests_newest_first()).all())


def list_harvests_by_plot(db: Session, plot_id: str) -> List[Harvest]:
    return list(db.scalars(_harvests_newest_first().where(Harvest.plot_id == plot_id)).all())
