from datetime import date
from typing import List, Optional, Sequence
from pydantic import BaseModel
from sqlmodel import Session, select
from eupay.errors import NotFoundError
from eupay.logging import logger
from eupay.models.project import Project, ProjectPeriod


class PeriodSpec(BaseModel):
    period_number: int
    start_date: date
    end_date: date
    description: Optional[str] = None


def _add_periods(session: Session, project_id: int, periods: Sequence[PeriodSpec]):
    for p in periods:
        session.add(ProjectPeriod(
            project_id=project_id,
            period_number=p.period_number,
            start_date=p.start_date,
            end_date=p.end_date,
            description=p.description,
        ))


def create_project(
    session: Session,
    name: str,
    code: str,
    start_date: date,
    periods: Sequence[PeriodSpec] = (),
) -> Project:
    project = Project(name=name, code=code, start_date=start_date)
    session.add(project)
    session.flush()
    _add_periods(session, project.id, periods)
    session.commit()
    session.refresh(project)
    logger.info(f"Created project {project.id} ({code}) with {len(periods)} periods")
    return project


def get_project(session: Session, project_id: int) -> Project:
    project = session.get(Project, project_id)
    if not project:
        raise NotFoundError(f"Project not found: {project_id}")
    return project


def list_projects(session: Session) -> List[Project]:
    return list(session.exec(select(Project).order_by(Project.name)).all())


def list_periods(session: Session, project_id: int) -> List[ProjectPeriod]:
    return list(session.exec(
        select(ProjectPeriod)
        .where(ProjectPeriod.project_id == project_id)
        .order_by(ProjectPeriod.period_number)
    ).all())


def get_period(session: Session, project_id: int, period_number: int) -> ProjectPeriod:
    period = session.exec(
        select(ProjectPeriod).where(
            ProjectPeriod.project_id == project_id,
            ProjectPeriod.period_number == period_number,
        )
    ).first()
    if not period:
        raise NotFoundError(f"Project period not found: project {project_id}, period {period_number}")
    return period


def update_project(
    session: Session,
    project_id: int,
    *,
    name: str,
    code: str,
    start_date: date,
    periods: Sequence[PeriodSpec] = (),
) -> Project:
    """Update a project; its periods are deleted and re-inserted, not diffed."""
    project = get_project(session, project_id)
    project.name = name
    project.code = code
    project.start_date = start_date
    session.add(project)

    for old in list_periods(session, project_id):
        session.delete(old)
    session.flush()
    _add_periods(session, project_id, periods)

    session.commit()
    session.refresh(project)
    return project


def delete_project(session: Session, project_id: int) -> None:
    project = get_project(session, project_id)
    for period in list_periods(session, project_id):
        session.delete(period)
    session.flush()
    session.delete(project)
    session.commit()
    logger.info(f"Deleted project {project_id}")
