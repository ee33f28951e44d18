from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from famsplit.core.auth import get_current_user
from famsplit.core.db import get_db
from famsplit.core.errors import NotFoundError, ValidationError
from famsplit.models.entities import Expense, Project, User
from famsplit.schemas.projects import ProjectCreate, ProjectListResponse, ProjectResponse, ProjectUpdate
from famsplit.services.access import require_family, require_family_admin, require_family_member
from famsplit.services.splits import to_money

router = APIRouter(prefix="/v1/families/{family_id}/projects", tags=["projects"])


def _spent_by_project(db: Session, project_ids: list[int]) -> dict[int, Decimal]:
    if not project_ids:
        return {}
    rows = db.execute(
        select(Expense.project_id, func.sum(Expense.amount))
        .where(Expense.project_id.in_(project_ids))
        .group_by(Expense.project_id)
    ).all()
    return {project_id: to_money(total or 0) for project_id, total in rows}


def _to_project_response(project: Project, total_spent: Decimal) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        family_id=project.family_id,
        name=project.name,
        budget=project.budget,
        description=project.description,
        created_at=project.created_at,
        total_spent=total_spent,
    )


def _ensure_project(db: Session, family_id: int, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.family_id != family_id:
        raise NotFoundError("project not found in this family")
    return project


@router.get("", response_model=ProjectListResponse)
def list_projects(
    family_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    projects = db.execute(
        select(Project).where(Project.family_id == family_id).order_by(Project.created_at.desc(), Project.id.desc())
    ).scalars().all()
    spent = _spent_by_project(db, [project.id for project in projects])
    return ProjectListResponse(
        items=[_to_project_response(project, spent.get(project.id, to_money(0))) for project in projects]
    )


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    family_id: int,
    project_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_member(db, family_id, user.id)
    project = _ensure_project(db, family_id, project_id)
    spent = _spent_by_project(db, [project.id])
    return _to_project_response(project, spent.get(project.id, to_money(0)))


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    family_id: int,
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_admin(db, family_id, user.id)
    project = Project(
        family_id=family_id,
        name=payload.name,
        budget=to_money(payload.budget) if payload.budget is not None else None,
        description=payload.description,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return _to_project_response(project, to_money(0))


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    family_id: int,
    project_id: int,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_admin(db, family_id, user.id)
    project = _ensure_project(db, family_id, project_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("at least one of name, budget, description is required")

    if changes.get("name") is not None:
        project.name = changes["name"]
    if "budget" in changes:
        project.budget = to_money(changes["budget"]) if changes["budget"] is not None else None
    if "description" in changes:
        project.description = changes["description"]

    db.commit()
    db.refresh(project)
    spent = _spent_by_project(db, [project.id])
    return _to_project_response(project, spent.get(project.id, to_money(0)))


@router.delete("/{project_id}", status_code=204)
def delete_project(
    family_id: int,
    project_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_family(db, family_id)
    require_family_admin(db, family_id, user.id)
    project = _ensure_project(db, family_id, project_id)
    # Expenses outlive their project; they just lose the reference.
    db.execute(update(Expense).where(Expense.project_id == project.id).values(project_id=None))
    db.delete(project)
    db.commit()
