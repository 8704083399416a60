"""CRUD operations for appointments."""

from tollgate import schemas
from tollgate.crud._base_tenant import CRUDBaseTenant
from tollgate.models import Appointment


class CRUDAppointment(CRUDBaseTenant[Appointment, schemas.AppointmentCreate]):
    """CRUD operations for appointments."""


appointment = CRUDAppointment(Appointment)
