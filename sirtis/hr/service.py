"""HR service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from sirtis.common.pagination
  - ``apply_filters / apply_search`` from sirtis.common.filters
  - ``create_audit_entry`` from sirtis.common.audit
  - ``NotFoundException / ConflictError`` from sirtis.common.exceptions
"""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import date
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sirtis.auth.models import User
from sirtis.common.audit import apply_changes, create_audit_entry
from sirtis.common.constants import DEFAULT_ARCHIVE_REASON, EmployeeStatus, VerificationStatus
from sirtis.common.exceptions import (
    BadRequestException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from sirtis.common.filters import apply_filters, apply_search
from sirtis.common.pagination import PaginatedResponse, PaginationParams, paginate
from sirtis.common.utils import jsonable, utcnow
from sirtis.hr.models import Department, Employee, JobDescription, Qualification
from sirtis.hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeUpdate,
    JobDescriptionCreate,
    JobDescriptionUpdate,
    KeyResponsibility,
    QualificationCreate,
    QualificationUpdate,
)

EMPLOYEE_NUMBER_PREFIX = "EMP-"


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        supervisor_id: Optional[uuid.UUID] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable employee list."""

        query = select(Employee).order_by(Employee.last_name, Employee.first_name)
        query = apply_filters(
            query,
            Employee,
            {
                "department_id": department_id,
                "status": status,
                "supervisor_id": supervisor_id,
            },
        )
        query = apply_search(
            query,
            Employee,
            search,
            ["first_name", "last_name", "email", "employee_number"],
        )
        return await paginate(db, query, pagination, model=Employee)

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .options(
                selectinload(Employee.department),
                selectinload(Employee.supervisor),
            )
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_detail(db: AsyncSession, employee_id: uuid.UUID) -> EmployeeDetail:
        return EmployeeDetail.model_validate(await EmployeeService.get_employee(db, employee_id))

    @staticmethod
    async def get_by_user(db: AsyncSession, user_id: uuid.UUID) -> Optional[Employee]:
        result = await db.execute(
            select(Employee)
            .where(Employee.user_id == user_id)
            .options(
                selectinload(Employee.department),
                selectinload(Employee.supervisor),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def next_employee_number(db: AsyncSession) -> str:
        result = await db.execute(
            select(Employee.employee_number)
            .where(Employee.employee_number.like(f"{EMPLOYEE_NUMBER_PREFIX}%"))
        )
        highest = 0
        for (number,) in result.all():
            suffix = number[len(EMPLOYEE_NUMBER_PREFIX):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{EMPLOYEE_NUMBER_PREFIX}{highest + 1:05d}"

    @staticmethod
    async def _check_user_link(
        db: AsyncSession,
        user_id: uuid.UUID,
        employee_id: Optional[uuid.UUID] = None,
    ) -> None:
        """A login account may back at most one employee record."""
        if await db.get(User, user_id) is None:
            raise NotFoundException("User", str(user_id))
        stmt = select(Employee.id).where(Employee.user_id == user_id)
        if employee_id is not None:
            stmt = stmt.where(Employee.id != employee_id)
        if (await db.execute(stmt)).first() is not None:
            raise ConflictError("user_id", str(user_id))

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Create a new employee record."""

        if await db.get(Department, data.department_id) is None:
            raise NotFoundException("Department", str(data.department_id))
        if data.supervisor_id and await db.get(Employee, data.supervisor_id) is None:
            raise NotFoundException("Employee", str(data.supervisor_id))
        if data.user_id:
            await EmployeeService._check_user_link(db, data.user_id)

        values = data.model_dump(mode="json", exclude={"department_id", "supervisor_id", "user_id"})
        values["email"] = values["email"].lower()
        values["employee_number"] = data.employee_number or await EmployeeService.next_employee_number(db)
        if data.date_of_birth:
            values["date_of_birth"] = data.date_of_birth
        if data.start_date:
            values["start_date"] = data.start_date
        values["base_salary"] = data.base_salary

        existing = await db.execute(
            select(Employee.email, Employee.employee_number).where(
                (Employee.email == values["email"])
                | (Employee.employee_number == values["employee_number"])
            )
        )
        row = existing.first()
        if row is not None:
            if row.email == values["email"]:
                raise ConflictError("email", values["email"])
            raise ConflictError("employee_number", values["employee_number"])

        employee = Employee(
            **values,
            department_id=data.department_id,
            supervisor_id=data.supervisor_id,
            user_id=data.user_id,
        )
        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action="CREATE",
            resource="employee",
            resource_id=employee.id,
            user_id=actor_id,
            new_values=jsonable(values),
        )
        return employee

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        changes: dict[str, Any],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial-update an existing employee from an ``exclude_unset`` dump."""

        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        if not changes:
            return employee

        if "email" in changes and changes["email"]:
            changes["email"] = changes["email"].lower()
            clash = await db.execute(
                select(Employee.id).where(
                    Employee.email == changes["email"], Employee.id != employee_id,
                )
            )
            if clash.first() is not None:
                raise ConflictError("email", changes["email"])
        if changes.get("supervisor_id") == employee_id:
            raise BadRequestException("An employee cannot supervise themselves.")
        if changes.get("department_id") and await db.get(Department, changes["department_id"]) is None:
            raise NotFoundException("Department", str(changes["department_id"]))
        if changes.get("user_id"):
            await EmployeeService._check_user_link(db, changes["user_id"], employee_id)

        old_values, new_values = apply_changes(employee, changes)
        if not new_values:
            return employee
        await db.flush()

        await create_audit_entry(
            db,
            action="UPDATE",
            resource="employee",
            resource_id=employee.id,
            user_id=actor_id,
            old_values=old_values,
            new_values=new_values,
        )
        return employee

    # ── Archive / restore ───────────────────────────────────────────

    @staticmethod
    async def archive_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        reason: Optional[str],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        if employee.is_archived:
            raise BadRequestException("Employee is already archived.")

        employee.status = EmployeeStatus.archived.value
        employee.archived_at = utcnow()
        employee.archive_reason = reason or DEFAULT_ARCHIVE_REASON
        await db.flush()

        await create_audit_entry(
            db,
            action="ARCHIVE",
            resource="employee",
            resource_id=employee.id,
            user_id=actor_id,
            details={"reason": employee.archive_reason},
        )
        return employee

    @staticmethod
    async def restore_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        if not employee.is_archived:
            raise BadRequestException("Employee is not archived.")

        previous_reason = employee.archive_reason
        employee.status = EmployeeStatus.active.value
        employee.archived_at = None
        employee.archive_reason = None
        await db.flush()

        await create_audit_entry(
            db,
            action="RESTORE",
            resource="employee",
            resource_id=employee.id,
            user_id=actor_id,
            details={"previous_reason": previous_reason},
        )
        return employee

    @staticmethod
    async def archived_overview(db: AsyncSession) -> dict[str, Any]:
        """Archived employees plus headline numbers and a reason breakdown."""
        result = await db.execute(
            select(Employee)
            .where(Employee.status == EmployeeStatus.archived.value)
            .options(selectinload(Employee.department), selectinload(Employee.supervisor))
            .order_by(Employee.archived_at.desc())
        )
        archived = result.scalars().all()
        active_count = (
            await db.execute(
                select(func.count()).select_from(Employee).where(
                    Employee.status == EmployeeStatus.active.value
                )
            )
        ).scalar_one()

        reasons = Counter(e.archive_reason or DEFAULT_ARCHIVE_REASON for e in archived)
        this_year = date.today().year
        return {
            "employees": archived,
            "stats": {
                "total_archived": len(archived),
                "total_active": active_count,
                "archived_this_year": sum(
                    1 for e in archived if e.archived_at and e.archived_at.year == this_year
                ),
            },
            "reasons": [
                {"reason": reason, "count": count}
                for reason, count in reasons.most_common()
            ],
        }

    # ── Supervision ─────────────────────────────────────────────────

    @staticmethod
    async def get_supervisees(
        db: AsyncSession,
        supervisor_id: uuid.UUID,
    ) -> Sequence[Employee]:
        """Return active employees reporting to *supervisor_id*."""
        result = await db.execute(
            select(Employee)
            .where(
                Employee.supervisor_id == supervisor_id,
                Employee.status == EmployeeStatus.active.value,
            )
            .order_by(Employee.first_name, Employee.last_name)
        )
        return result.scalars().all()


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """CRUD for departments with active-employee counts."""

    @staticmethod
    async def _active_counts(db: AsyncSession) -> dict[uuid.UUID, int]:
        result = await db.execute(
            select(Employee.department_id, func.count())
            .where(Employee.status == EmployeeStatus.active.value)
            .group_by(Employee.department_id)
        )
        return {dept_id: count for dept_id, count in result.all() if dept_id}

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[DepartmentResponse]:
        query = select(Department).order_by(Department.name)
        if not include_inactive:
            query = query.where(Department.is_active.is_(True))
        departments = (await db.execute(query)).scalars().all()
        counts = await DepartmentService._active_counts(db)

        items = []
        for dept in departments:
            item = DepartmentResponse.model_validate(dept)
            item.employee_count = counts.get(dept.id, 0)
            items.append(item)
        return items

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> DepartmentResponse:
        dept = await db.get(Department, department_id)
        if dept is None:
            raise NotFoundException("Department", str(department_id))
        item = DepartmentResponse.model_validate(dept)
        item.employee_count = (await DepartmentService._active_counts(db)).get(dept.id, 0)
        return item

    @staticmethod
    async def _check_unique(
        db: AsyncSession,
        *,
        name: Optional[str],
        code: Optional[str],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if name:
            query = select(Department.id).where(func.lower(Department.name) == name.lower())
            if exclude_id:
                query = query.where(Department.id != exclude_id)
            if (await db.execute(query)).first() is not None:
                raise ConflictError("name", name)
        if code:
            query = select(Department.id).where(Department.code == code)
            if exclude_id:
                query = query.where(Department.id != exclude_id)
            if (await db.execute(query)).first() is not None:
                raise ConflictError("code", code)

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        name = data.name.strip()
        # Default code: first three letters of the name.
        code = (data.code or name[:3]).strip().upper()
        await DepartmentService._check_unique(db, name=name, code=code)

        dept = Department(
            name=name,
            code=code,
            description=data.description or f"{name} Department",
            manager_name=data.manager_name,
            budget=data.budget,
            location=data.location,
        )
        db.add(dept)
        await db.flush()

        await create_audit_entry(
            db,
            action="CREATE",
            resource="department",
            resource_id=dept.id,
            user_id=actor_id,
            new_values={"name": name, "code": code},
        )
        return dept

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Department:
        dept = await db.get(Department, department_id)
        if dept is None:
            raise NotFoundException("Department", str(department_id))

        changes = data.model_dump(exclude_unset=True)
        if changes.get("code"):
            changes["code"] = changes["code"].strip().upper()
        if changes.get("name"):
            changes["name"] = changes["name"].strip()
        await DepartmentService._check_unique(
            db,
            name=changes.get("name"),
            code=changes.get("code"),
            exclude_id=department_id,
        )

        old_values, new_values = apply_changes(dept, changes)
        if new_values:
            await db.flush()
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="department",
                resource_id=dept.id,
                user_id=actor_id,
                old_values=old_values,
                new_values=new_values,
            )
        return dept

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        dept = await db.get(Department, department_id)
        if dept is None:
            raise NotFoundException("Department", str(department_id))

        active = (await DepartmentService._active_counts(db)).get(dept.id, 0)
        if active:
            raise BadRequestException(
                f"Cannot delete department with {active} active employees"
            )

        await db.delete(dept)
        await db.flush()
        await create_audit_entry(
            db,
            action="DELETE",
            resource="department",
            resource_id=department_id,
            user_id=actor_id,
            old_values={"name": dept.name, "code": dept.code},
        )


# ═════════════════════════════════════════════════════════════════════
# JobDescriptionService
# ═════════════════════════════════════════════════════════════════════


def _check_weights(items: list[KeyResponsibility]) -> None:
    """Weights must total 100 whenever responsibilities are given."""
    if not items:
        return
    total = sum(item.weight for item in items)
    if total != 100:
        raise ValidationException(
            {"key_responsibilities": [f"Weights must add up to 100 (got {total})."]}
        )


class JobDescriptionService:

    @staticmethod
    async def list_job_descriptions(
        db: AsyncSession,
        employee_id: Optional[uuid.UUID] = None,
    ) -> Sequence[JobDescription]:
        query = (
            select(JobDescription)
            .where(JobDescription.is_active.is_(True))
            .order_by(JobDescription.updated_at.desc())
        )
        if employee_id:
            query = query.where(JobDescription.employee_id == employee_id)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_job_description(db: AsyncSession, jd_id: uuid.UUID) -> JobDescription:
        jd = await db.get(JobDescription, jd_id)
        if jd is None:
            raise NotFoundException("JobDescription", str(jd_id))
        return jd

    @staticmethod
    async def save_job_description(
        db: AsyncSession,
        data: JobDescriptionCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> tuple[JobDescription, bool]:
        """Create the employee's job description, or replace it as a new version.

        Returns ``(job_description, created)``.
        """
        if await db.get(Employee, data.employee_id) is None:
            raise NotFoundException("Employee", str(data.employee_id))
        _check_weights(data.key_responsibilities)

        values = data.model_dump(exclude={"employee_id"})
        jd = (
            await db.execute(select(JobDescription).where(JobDescription.employee_id == data.employee_id))
        ).scalars().first()
        created = jd is None
        if created:
            jd = JobDescription(employee_id=data.employee_id, version=1, **values)
            db.add(jd)
        else:
            for field, value in values.items():
                setattr(jd, field, value)
            jd.version += 1
            jd.is_active = True
        await db.flush()

        await create_audit_entry(
            db,
            action="CREATE" if created else "UPDATE",
            resource="job_description",
            resource_id=jd.id,
            user_id=actor_id,
            new_values={"job_title": jd.job_title, "version": jd.version},
        )
        return jd, created

    @staticmethod
    async def update_job_description(
        db: AsyncSession,
        jd_id: uuid.UUID,
        data: JobDescriptionUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> JobDescription:
        jd = await JobDescriptionService.get_job_description(db, jd_id)
        changes = data.model_dump(exclude_unset=True)
        if "key_responsibilities" in changes:
            _check_weights(data.key_responsibilities or [])
            changes["key_responsibilities"] = changes["key_responsibilities"] or []

        old_values, new_values = apply_changes(jd, changes)
        if new_values:
            jd.version += 1
            await db.flush()
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="job_description",
                resource_id=jd.id,
                user_id=actor_id,
                old_values=old_values,
                new_values=new_values,
            )
        return jd

    @staticmethod
    async def deactivate_job_description(
        db: AsyncSession,
        jd_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> JobDescription:
        jd = await JobDescriptionService.get_job_description(db, jd_id)
        jd.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="DEACTIVATE",
            resource="job_description",
            resource_id=jd.id,
            user_id=actor_id,
        )
        return jd


# ═════════════════════════════════════════════════════════════════════
# QualificationService
# ═════════════════════════════════════════════════════════════════════


class QualificationService:

    @staticmethod
    async def list_for_employee(db: AsyncSession, employee_id: uuid.UUID) -> Sequence[Qualification]:
        result = await db.execute(
            select(Qualification)
            .where(Qualification.employee_id == employee_id)
            .order_by(Qualification.date_obtained.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def get_owned(
        db: AsyncSession,
        qualification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Qualification:
        """Another employee's qualification reads as missing."""
        qualification = await db.get(Qualification, qualification_id)
        if qualification is None or qualification.employee_id != employee_id:
            raise NotFoundException("Qualification", str(qualification_id))
        return qualification

    @staticmethod
    def _check_dates(date_obtained: date, expiry_date: Optional[date]) -> None:
        if expiry_date is not None and expiry_date < date_obtained:
            raise ValidationException(
                {"expiry_date": ["Expiry date cannot be before the date obtained."]}
            )

    @staticmethod
    async def add_qualification(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: QualificationCreate,
    ) -> Qualification:
        QualificationService._check_dates(data.date_obtained, data.expiry_date)
        qualification = Qualification(
            employee_id=employee_id,
            **data.model_dump(mode="json", exclude={"date_obtained", "expiry_date"}),
            date_obtained=data.date_obtained,
            expiry_date=data.expiry_date,
        )
        db.add(qualification)
        await db.flush()
        return qualification

    @staticmethod
    async def update_qualification(
        db: AsyncSession,
        qualification_id: uuid.UUID,
        employee_id: uuid.UUID,
        data: QualificationUpdate,
    ) -> Qualification:
        """Apply the owner's edits; any change sends it back for verification."""
        qualification = await QualificationService.get_owned(db, qualification_id, employee_id)
        changes = data.model_dump(exclude_unset=True)
        QualificationService._check_dates(
            changes.get("date_obtained") or qualification.date_obtained,
            changes.get("expiry_date", qualification.expiry_date),
        )

        _, new_values = apply_changes(qualification, changes)
        if new_values:
            qualification.verification_status = VerificationStatus.pending.value
            qualification.verified_by = None
            qualification.verified_at = None
            await db.flush()
        return qualification

    @staticmethod
    async def delete_qualification(
        db: AsyncSession,
        qualification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> None:
        qualification = await QualificationService.get_owned(db, qualification_id, employee_id)
        await db.delete(qualification)
        await db.flush()

    @staticmethod
    async def verify(
        db: AsyncSession,
        qualification_id: uuid.UUID,
        employee_id: uuid.UUID,
        status: VerificationStatus,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Qualification:
        qualification = await QualificationService.get_owned(db, qualification_id, employee_id)
        previous = qualification.verification_status
        qualification.verification_status = status.value
        if status == VerificationStatus.pending:
            qualification.verified_by = None
            qualification.verified_at = None
        else:
            qualification.verified_by = actor_id
            qualification.verified_at = utcnow()
        await db.flush()
        await create_audit_entry(
            db,
            action="VERIFY",
            resource="qualification",
            resource_id=qualification.id,
            user_id=actor_id,
            old_values={"verification_status": previous},
            new_values={"verification_status": status.value},
        )
        return qualification
