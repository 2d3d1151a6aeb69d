"""HR router — Employee, Department, job description and self-service API endpoints.

Routes:
    /employees                      — List, create employees
    /employees/archived             — Archived employees with stats
    /employees/{id}                 — Get, update employee
    /employees/{id}/archive         — Archive an employee
    /employees/{id}/restore         — Restore an archived employee
    /employees/{id}/qualifications  — Qualifications on record, verification
    /departments                    — List, create departments
    /departments/{id}               — Get, update, delete department
    /job-descriptions               — List, create or re-version job descriptions
    /job-descriptions/{id}          — Get, update, deactivate
    /employee/profile               — Own profile (read / limited update)
    /employee/dashboard-stats       — Own headline numbers
    /employee/supervised-employees  — Own direct reports
    /employee/qualifications        — Own qualifications
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import get_current_user, require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import ROLE_FLAGS, AccessLevel, Module, PlanStatus, has_access
from sirtis.common.exceptions import ForbiddenException, NotFoundException
from sirtis.common.pagination import PaginationParams
from sirtis.database import get_db
from sirtis.documents.models import Document
from sirtis.hr.schemas import (
    ArchiveRequest,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeSummary,
    EmployeeUpdate,
    JobDescriptionCreate,
    JobDescriptionResponse,
    JobDescriptionUpdate,
    ProfileUpdate,
    QualificationCreate,
    QualificationResponse,
    QualificationUpdate,
    QualificationVerify,
)
from sirtis.hr.service import (
    DepartmentService,
    EmployeeService,
    JobDescriptionService,
    QualificationService,
)
from sirtis.performance.models import PerformancePlan


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])
self_service_router = APIRouter(prefix="", tags=["self-service"])
job_descriptions_router = APIRouter(prefix="", tags=["job-descriptions"])

_hr_view = require_module_access(Module.hr, AccessLevel.view)
_hr_edit = require_module_access(Module.hr, AccessLevel.edit)
_hr_full = require_module_access(Module.hr, AccessLevel.full)


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


# ── GET /employees — List employees ─────────────────────────────────

@employees_router.get("")
async def list_employees(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email or employee number"),
    department_id: Optional[uuid.UUID] = Query(None, description="Filter by department"),
    status: Optional[str] = Query(None, description="Filter by status (active, archived)"),
    supervisor_id: Optional[uuid.UUID] = Query(None, description="Filter by supervisor"),
):
    """List employees with pagination, search, and filtering."""
    result = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department_id=department_id,
        status=status,
        supervisor_id=supervisor_id,
    )
    return {
        "data": [EmployeeSummary.model_validate(emp).model_dump(mode="json") for emp in result.data],
        "meta": result.meta.model_dump(),
    }


# ── GET /employees/archived — Archived employees ───────────────────
# NOTE: defined before /employees/{employee_id} to avoid path conflicts.

@employees_router.get("/archived")
async def list_archived_employees(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
):
    overview = await EmployeeService.archived_overview(db)
    return {
        "data": [
            EmployeeDetail.model_validate(emp).model_dump(
                mode="json", exclude={"department", "supervisor"},
            )
            for emp in overview["employees"]
        ],
        "stats": overview["stats"],
        "reasons": overview["reasons"],
    }


# ── GET /employees/{id} — Full employee profile ────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Retrieve an employee.

    Access rules:
    - **hr view or above**: any employee
    - **others**: own record, or a record they supervise
    """
    employee = await EmployeeService.get_employee(db, employee_id)

    role = request.state.user_role
    if not (has_access(role, Module.hr, AccessLevel.view) or ROLE_FLAGS[role]["can_view_others_profiles"]):
        own = await EmployeeService.get_by_user(db, current_user.id)
        is_own = own is not None and own.id == employee.id
        supervises = own is not None and employee.supervisor_id == own.id
        if not (is_own or supervises):
            raise ForbiddenException(
                detail="You can only view your own record or employees you supervise.",
            )

    return {
        "data": EmployeeDetail.model_validate(employee).model_dump(mode="json"),
        "message": "Employee retrieved successfully.",
    }


# ── POST /employees — Create employee ──────────────────────────────

@employees_router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    """Create a new employee record. Auto-numbers ``EMP-00001`` style when omitted."""
    employee = await EmployeeService.create_employee(db, body, actor_id=current_user.id)
    detail = await EmployeeService.get_detail(db, employee.id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee created successfully.",
    }


# ── PUT /employees/{id} — Update employee ──────────────────────────

@employees_router.put("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    await EmployeeService.update_employee(
        db, employee_id, body.model_dump(exclude_unset=True), actor_id=current_user.id,
    )
    detail = await EmployeeService.get_detail(db, employee_id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Employee updated successfully.",
    }


# ── POST /employees/{id}/archive ───────────────────────────────────

@employees_router.post("/{employee_id}/archive")
async def archive_employee(
    employee_id: uuid.UUID,
    body: ArchiveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    employee = await EmployeeService.archive_employee(
        db, employee_id, body.reason, actor_id=current_user.id,
    )
    return {
        "data": EmployeeSummary.model_validate(employee).model_dump(mode="json"),
        "message": "Employee archived successfully.",
    }


# ── POST /employees/{id}/restore ───────────────────────────────────

@employees_router.post("/{employee_id}/restore")
async def restore_employee(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    employee = await EmployeeService.restore_employee(db, employee_id, actor_id=current_user.id)
    return {
        "data": EmployeeSummary.model_validate(employee).model_dump(mode="json"),
        "message": "Employee restored successfully.",
    }


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
    include_inactive: bool = Query(False, description="Include deactivated departments"),
):
    items = await DepartmentService.list_departments(db, include_inactive=include_inactive)
    return {
        "data": [item.model_dump(mode="json") for item in items],
        "message": "Departments retrieved successfully.",
    }


@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
):
    item = await DepartmentService.get_department(db, department_id)
    return {"data": item.model_dump(mode="json")}


@departments_router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    dept = await DepartmentService.create_department(db, body, actor_id=current_user.id)
    return {
        "data": DepartmentResponse.model_validate(dept).model_dump(mode="json"),
        "message": "Department created successfully.",
    }


@departments_router.put("/{department_id}")
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    await DepartmentService.update_department(db, department_id, body, actor_id=current_user.id)
    item = await DepartmentService.get_department(db, department_id)
    return {
        "data": item.model_dump(mode="json"),
        "message": "Department updated successfully.",
    }


@departments_router.delete("/{department_id}")
async def delete_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_full),
):
    await DepartmentService.delete_department(db, department_id, actor_id=current_user.id)
    return {"message": "Department deleted successfully."}


# ── GET /employees/{id}/qualifications ──────────────────────────────

@employees_router.get("/{employee_id}/qualifications")
async def list_employee_qualifications(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
):
    await EmployeeService.get_employee(db, employee_id)
    items = await QualificationService.list_for_employee(db, employee_id)
    return {"data": [QualificationResponse.model_validate(q).model_dump(mode="json") for q in items]}


# ── POST /employees/{id}/qualifications/{qid}/verify ───────────────

@employees_router.post("/{employee_id}/qualifications/{qualification_id}/verify")
async def verify_qualification(
    employee_id: uuid.UUID,
    qualification_id: uuid.UUID,
    body: QualificationVerify,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    qualification = await QualificationService.verify(
        db, qualification_id, employee_id, body.status, actor_id=current_user.id,
    )
    return {
        "data": QualificationResponse.model_validate(qualification).model_dump(mode="json"),
        "message": f"Qualification marked {body.status.value}.",
    }


# ═════════════════════════════════════════════════════════════════════
# Job Description Endpoints
# ═════════════════════════════════════════════════════════════════════


@job_descriptions_router.get("")
async def list_job_descriptions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
    employee_id: Optional[uuid.UUID] = Query(None, description="Filter by employee"),
):
    items = await JobDescriptionService.list_job_descriptions(db, employee_id)
    return {"data": [JobDescriptionResponse.model_validate(jd).model_dump(mode="json") for jd in items]}


@job_descriptions_router.post("", status_code=201)
async def save_job_description(
    body: JobDescriptionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    """Create the employee's job description; an existing one becomes the next version."""
    jd, created = await JobDescriptionService.save_job_description(db, body, actor_id=current_user.id)
    return {
        "data": JobDescriptionResponse.model_validate(jd).model_dump(mode="json"),
        "message": "Job description created." if created else f"Job description saved as version {jd.version}.",
    }


@job_descriptions_router.get("/{jd_id}")
async def get_job_description(
    jd_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_view),
):
    jd = await JobDescriptionService.get_job_description(db, jd_id)
    return {"data": JobDescriptionResponse.model_validate(jd).model_dump(mode="json")}


@job_descriptions_router.put("/{jd_id}")
async def update_job_description(
    jd_id: uuid.UUID,
    body: JobDescriptionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_edit),
):
    jd = await JobDescriptionService.update_job_description(db, jd_id, body, actor_id=current_user.id)
    return {
        "data": JobDescriptionResponse.model_validate(jd).model_dump(mode="json"),
        "message": "Job description updated.",
    }


@job_descriptions_router.delete("/{jd_id}")
async def deactivate_job_description(
    jd_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_hr_full),
):
    await JobDescriptionService.deactivate_job_description(db, jd_id, actor_id=current_user.id)
    return {"data": None, "message": "Job description deactivated."}


# ═════════════════════════════════════════════════════════════════════
# Self-service Endpoints
# ═════════════════════════════════════════════════════════════════════

_profile_view = require_module_access(Module.personal_profile, AccessLevel.view)
_profile_edit = require_module_access(Module.personal_profile, AccessLevel.edit)


async def _own_employee(db: AsyncSession, user: User):
    employee = await EmployeeService.get_by_user(db, user.id)
    if employee is None:
        raise NotFoundException("Employee", f"user:{user.id}")
    return employee


@self_service_router.get("/profile")
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_view),
):
    employee = await _own_employee(db, current_user)
    return {"data": EmployeeDetail.model_validate(employee).model_dump(mode="json")}


@self_service_router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_edit),
):
    employee = await _own_employee(db, current_user)
    await EmployeeService.update_employee(
        db, employee.id, body.model_dump(exclude_unset=True), actor_id=current_user.id,
    )
    detail = await EmployeeService.get_detail(db, employee.id)
    return {
        "data": detail.model_dump(mode="json"),
        "message": "Profile updated successfully.",
    }


@self_service_router.get("/dashboard-stats")
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_view),
):
    """Headline numbers for the signed-in employee's home page."""
    employee = await _own_employee(db, current_user)

    years_of_service = 0
    if employee.start_date:
        today = date.today()
        years_of_service = today.year - employee.start_date.year - (
            (today.month, today.day) < (employee.start_date.month, employee.start_date.day)
        )

    plans = (
        await db.execute(
            select(PerformancePlan)
            .where(PerformancePlan.employee_id == employee.id)
            .order_by(PerformancePlan.created_at.desc())
        )
    ).scalars().all()
    open_plans = [p for p in plans if p.status != PlanStatus.completed.value]

    supervisee_ids = select(PerformancePlan.id).where(
        PerformancePlan.supervisor_id == current_user.id,
        PerformancePlan.status == PlanStatus.supervisor_review.value,
    )
    reviewer_ids = select(PerformancePlan.id).where(
        PerformancePlan.reviewer_id == current_user.id,
        PerformancePlan.status == PlanStatus.reviewer_review.value,
    )
    pending_actions = (
        await db.execute(select(func.count()).select_from(supervisee_ids.subquery()))
    ).scalar_one() + (
        await db.execute(select(func.count()).select_from(reviewer_ids.subquery()))
    ).scalar_one()

    documents_uploaded = (
        await db.execute(
            select(func.count()).select_from(Document).where(Document.uploaded_by == current_user.id)
        )
    ).scalar_one()

    return {
        "data": {
            "years_of_service": max(years_of_service, 0),
            "open_plans": len(open_plans),
            "pending_actions": pending_actions,
            "documents_uploaded": documents_uploaded,
            "latest_plan_status": plans[0].status if plans else None,
            "department": employee.department.name if employee.department else None,
        }
    }


@self_service_router.get("/supervised-employees")
async def supervised_employees(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_view),
):
    employee = await _own_employee(db, current_user)
    supervisees = await EmployeeService.get_supervisees(db, employee.id)
    return {
        "data": [EmployeeSummary.model_validate(e).model_dump(mode="json") for e in supervisees],
    }


# ── /employee/qualifications — Own qualifications ──────────────────

@self_service_router.get("/qualifications")
async def list_own_qualifications(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_view),
):
    employee = await _own_employee(db, current_user)
    items = await QualificationService.list_for_employee(db, employee.id)
    return {"data": [QualificationResponse.model_validate(q).model_dump(mode="json") for q in items]}


@self_service_router.post("/qualifications", status_code=201)
async def add_own_qualification(
    body: QualificationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_edit),
):
    employee = await _own_employee(db, current_user)
    qualification = await QualificationService.add_qualification(db, employee.id, body)
    return {
        "data": QualificationResponse.model_validate(qualification).model_dump(mode="json"),
        "message": "Qualification added.",
    }


@self_service_router.put("/qualifications/{qualification_id}")
async def update_own_qualification(
    qualification_id: uuid.UUID,
    body: QualificationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_edit),
):
    employee = await _own_employee(db, current_user)
    qualification = await QualificationService.update_qualification(db, qualification_id, employee.id, body)
    return {
        "data": QualificationResponse.model_validate(qualification).model_dump(mode="json"),
        "message": "Qualification updated.",
    }


@self_service_router.delete("/qualifications/{qualification_id}")
async def delete_own_qualification(
    qualification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_profile_edit),
):
    employee = await _own_employee(db, current_user)
    await QualificationService.delete_qualification(db, qualification_id, employee.id)
    return {"data": None, "message": "Qualification removed."}
