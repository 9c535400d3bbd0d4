"""
Driver/vehicle collaborator.

Vehicle management lives outside the core; rides only need to know whether
the driver has a vehicle and which one was registered last.
"""

from typing import Optional
from sqlalchemy.orm import Session

from ..database.models import Vehicle


class VehicleDAO:
    """Read access to a driver's vehicles, plus inserts for seeding."""

    def __init__(self, session: Session):
        self.session = session

    def has_registered_vehicle(self, driver_id: int) -> bool:
        return self.latest_vehicle_id(driver_id) is not None

    def latest_vehicle_id(self, driver_id: int) -> Optional[int]:
        return (
            self.session.query(Vehicle.vehicle_id)
            .filter(Vehicle.owner_id == driver_id)
            .order_by(Vehicle.vehicle_id.desc())
            .limit(1)
            .scalar()
        )

    def add_vehicle(
        self,
        owner_id: int,
        model: Optional[str] = None,
        plate: Optional[str] = None,
        energy: str = "thermal",
    ) -> Vehicle:
        vehicle = Vehicle(owner_id=owner_id, model=model, plate=plate, energy=energy)
        self.session.add(vehicle)
        self.session.flush()
        return vehicle
