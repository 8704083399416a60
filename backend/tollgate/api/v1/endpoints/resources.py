"""API endpoints for tenant resources that count against trial ceilings."""

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud, schemas
from tollgate.api import deps
from tollgate.api.context import ApiContext
from tollgate.api.router import TrailingSlashRouter
from tollgate.core.shared_models import ResourceKind
from tollgate.platform.billing.trial_limits import TrialLimitService

router = TrailingSlashRouter()


@router.get("/employees", response_model=list[schemas.Employee])
async def list_employees(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> list[schemas.Employee]:
    """List the tenant's employees."""
    employees = await crud.employee.get_multi(db, tenant_id=ctx.tenant_id)
    return [schemas.Employee.model_validate(e, from_attributes=True) for e in employees]


@router.post("/employees", response_model=schemas.Employee, status_code=201)
async def create_employee(
    employee_in: schemas.EmployeeCreate,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    trial_limits: TrialLimitService = Depends(deps.get_trial_limit_service),
) -> schemas.Employee:
    """Add an employee. Trialing tenants are capped."""
    async with trial_limits.guard_create(db, ctx.tenant_id, ResourceKind.EMPLOYEES):
        employee = await crud.employee.create(db, obj_in=employee_in, tenant_id=ctx.tenant_id)
    return schemas.Employee.model_validate(employee, from_attributes=True)


@router.delete("/employees/{employee_id}", response_model=schemas.Employee)
async def delete_employee(
    employee_id: UUID,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Employee:
    """Soft-delete an employee; the slot is freed for trial counting."""
    employee = await crud.employee.soft_delete(db, id=employee_id, tenant_id=ctx.tenant_id)
    return schemas.Employee.model_validate(employee, from_attributes=True)


@router.get("/visitors", response_model=list[schemas.Visitor])
async def list_visitors(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> list[schemas.Visitor]:
    """List the tenant's visitors."""
    visitors = await crud.visitor.get_multi(db, tenant_id=ctx.tenant_id)
    return [schemas.Visitor.model_validate(v, from_attributes=True) for v in visitors]


@router.post("/visitors", response_model=schemas.Visitor, status_code=201)
async def create_visitor(
    visitor_in: schemas.VisitorCreate,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    trial_limits: TrialLimitService = Depends(deps.get_trial_limit_service),
) -> schemas.Visitor:
    """Register a visitor. Trialing tenants are capped."""
    async with trial_limits.guard_create(db, ctx.tenant_id, ResourceKind.VISITORS):
        visitor = await crud.visitor.create(db, obj_in=visitor_in, tenant_id=ctx.tenant_id)
    return schemas.Visitor.model_validate(visitor, from_attributes=True)


@router.delete("/visitors/{visitor_id}", response_model=schemas.Visitor)
async def delete_visitor(
    visitor_id: UUID,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Visitor:
    """Soft-delete a visitor."""
    visitor = await crud.visitor.soft_delete(db, id=visitor_id, tenant_id=ctx.tenant_id)
    return schemas.Visitor.model_validate(visitor, from_attributes=True)


@router.get("/appointments", response_model=list[schemas.Appointment])
async def list_appointments(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> list[schemas.Appointment]:
    """List the tenant's appointments."""
    appointments = await crud.appointment.get_multi(db, tenant_id=ctx.tenant_id)
    return [schemas.Appointment.model_validate(a, from_attributes=True) for a in appointments]


@router.post("/appointments", response_model=schemas.Appointment, status_code=201)
async def create_appointment(
    appointment_in: schemas.AppointmentCreate,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    trial_limits: TrialLimitService = Depends(deps.get_trial_limit_service),
) -> schemas.Appointment:
    """Book an appointment. Trialing tenants are capped."""
    async with trial_limits.guard_create(db, ctx.tenant_id, ResourceKind.APPOINTMENTS):
        appointment = await crud.appointment.create(
            db, obj_in=appointment_in, tenant_id=ctx.tenant_id
        )
    return schemas.Appointment.model_validate(appointment, from_attributes=True)


@router.delete("/appointments/{appointment_id}", response_model=schemas.Appointment)
async def delete_appointment(
    appointment_id: UUID,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
) -> schemas.Appointment:
    """Soft-delete an appointment."""
    appointment = await crud.appointment.soft_delete(
        db, id=appointment_id, tenant_id=ctx.tenant_id
    )
    return schemas.Appointment.model_validate(appointment, from_attributes=True)
