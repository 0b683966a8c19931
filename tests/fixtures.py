"""Database fixtures for projloader tests (shared)."""

import pytest
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Company, Location, Reservation, Vehicle


async def create_sample_companies(session: AsyncSession):
    companies = [
        Company(id=1, name="Acme Leasing", country="US"),
        Company(id=2, name="Borrow Co", country="US"),
        Company(id=3, name="Fleet GmbH", country="DE"),
    ]
    session.add_all(companies)
    await session.commit()
    return companies


async def create_sample_locations(session: AsyncSession):
    locations = [
        Location(id=1, timezone="America/Chicago", city="Chicago"),
        Location(id=2, timezone="Europe/Berlin", city="Berlin"),
    ]
    session.add_all(locations)
    await session.commit()
    return locations


async def create_sample_vehicles(session: AsyncSession):
    vehicles = [
        Vehicle(id=10, customer_vehicle_number="CV-10", vin="1HGCM82633A000010", make="Volvo", model="FH16", location_id=1),
        Vehicle(id=11, customer_vehicle_number="CV-11", vin="1HGCM82633A000011", make="Scania", model="R500", location_id=1),
        Vehicle(id=12, customer_vehicle_number="CV-12", vin="1HGCM82633A000012", make="MAN", model="TGX", location_id=2),
    ]
    session.add_all(vehicles)
    await session.commit()
    return vehicles


async def create_sample_reservations(session: AsyncSession):
    """Five reservations sharing three vehicles and three companies."""
    start = datetime(2024, 3, 1, 9, 0, 0)
    reservations = [
        Reservation(id=100, hash="a1", state="approved", start_date=start, end_date=start + timedelta(days=3), duration="3d",
                    vehicle_id=10, borrower_company_id=2, lender_company_id=1),
        Reservation(id=101, hash="b2", state="requested", start_date=start, end_date=start + timedelta(days=1), duration="1d",
                    vehicle_id=11, borrower_company_id=2, lender_company_id=1),
        Reservation(id=102, hash="c3", state="approved", start_date=start, end_date=start + timedelta(days=7), duration="7d",
                    vehicle_id=10, borrower_company_id=3, lender_company_id=1),
        Reservation(id=103, hash="d4", state="cancelled", start_date=start, end_date=start + timedelta(days=2), duration="2d",
                    vehicle_id=12, borrower_company_id=2, lender_company_id=3),
        Reservation(id=104, hash="e5", state="approved", start_date=start, end_date=start + timedelta(days=5), duration="5d",
                    vehicle_id=None, borrower_company_id=3, lender_company_id=1),
    ]
    session.add_all(reservations)
    await session.commit()
    return reservations


@pytest.fixture(scope="function")
async def populated_db(db_session: AsyncSession):
    companies = await create_sample_companies(db_session)
    locations = await create_sample_locations(db_session)
    vehicles = await create_sample_vehicles(db_session)
    reservations = await create_sample_reservations(db_session)
    return {
        'companies': companies,
        'locations': locations,
        'vehicles': vehicles,
        'reservations': reservations,
    }
