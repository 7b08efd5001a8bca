"""
Vehicle Identity Resolver - Canonical vehicle ids from car numbers

Independently produced files name vehicles differently (a bare car number,
a vehicle id with a chassis segment, ...). All of them are mapped onto one
fixed template keyed by car number so the sources merge without a lookup
table.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

from app.utils.logger import get_logger
from app.utils.validators import extract_trailing_number, validate_car_number, validate_vehicle_id
from config.settings import ImportSettings
from data_pipeline.errors import IdentityError


class VehicleIdentityResolver:
    """
    Resolve car numbers to canonical vehicle ids.

    ``resolve`` is pure and deterministic; the resolver additionally
    remembers every identity handed out during the current run so the loader
    can write the vehicle rows before any dependent row.
    """

    def __init__(self, settings: Optional[ImportSettings] = None):
        settings = settings or ImportSettings()
        self.prefix = settings.vehicle_id_prefix
        self.series = settings.vehicle_series
        self.number_width = settings.car_number_width
        self.logger = get_logger(__name__)

        self._identities: Dict[str, int] = {}
        self._written: Set[str] = set()

    def format_vehicle_id(self, car_number: int) -> str:
        number = str(car_number).zfill(self.number_width) if self.number_width else str(car_number)
        return f"{self.prefix}-{self.series}-{number}"

    @property
    def template(self) -> str:
        """Human-readable id template, e.g. 'GR86-004-N'."""
        return f"{self.prefix}-{self.series}-{'N' * max(self.number_width, 1)}"

    def is_canonical(self, vehicle_id: str) -> bool:
        """Whether ``vehicle_id`` is an id this resolver can produce."""
        return validate_vehicle_id(vehicle_id, self.prefix, self.series, self.number_width)

    def resolve(self, car_number: Optional[int]) -> str:
        """
        Map a car number to its canonical vehicle id.

        Args:
            car_number: Positive racing number

        Returns:
            Canonical id, e.g. 'GR86-004-78'

        Raises:
            IdentityError: If the number is missing or not positive
        """
        if not validate_car_number(car_number):
            raise IdentityError(
                f"Invalid car number: {car_number!r}",
                details={"car_number": car_number},
            )

        vehicle_id = self.format_vehicle_id(car_number)
        self._identities.setdefault(vehicle_id, car_number)
        return vehicle_id

    def canonicalize(self, vehicle_id: str) -> str:
        """
        Map a directly supplied vehicle id onto the canonical template.

        The trailing numeric segment is taken as the car number, so
        'GR86-002-78' and '78' both become 'GR86-004-78'.

        Raises:
            IdentityError: If no positive trailing number is present
        """
        car_number = extract_trailing_number(vehicle_id) if vehicle_id else None
        if car_number is None:
            raise IdentityError(
                f"Vehicle id has no car number: {vehicle_id!r}",
                details={"vehicle_id": vehicle_id},
            )
        return self.resolve(car_number)

    def resolve_record(self, record) -> str:
        """Resolve the identity of a parsed vehicle-keyed record."""
        if record.car_number is not None:
            return self.resolve(record.car_number)
        if record.vehicle_id:
            return self.canonicalize(record.vehicle_id)
        raise IdentityError("Record carries neither a car number nor a vehicle id")

    def car_number_of(self, vehicle_id: str) -> Optional[int]:
        return self._identities.get(vehicle_id)

    @property
    def identities(self) -> Dict[str, int]:
        """All identities seen in this run, vehicle_id -> car_number."""
        return dict(self._identities)

    def new_identities(self) -> List[Tuple[str, int]]:
        """Identities not yet handed to the loader for writing."""
        return [
            (vehicle_id, car_number)
            for vehicle_id, car_number in self._identities.items()
            if vehicle_id not in self._written
        ]

    def mark_written(self, vehicle_ids: Iterable[str]) -> None:
        self._written.update(vehicle_ids)

    def forget_written(self, vehicle_ids: Iterable[str]) -> None:
        """Undo ``mark_written`` after the writing transaction rolled back."""
        self._written.difference_update(vehicle_ids)
