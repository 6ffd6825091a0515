"""
Unit tests for medquote/services/catalog_service.py

Tests: name normalisation, slug generation and collisions, duplicate names,
       batch validation, referenced-product protection, admin-only writes.
"""

import uuid

import pytest
from sqlalchemy import func, select

from medquote.errors import CONFLICT, FORBIDDEN, NOT_FOUND, ServiceError
from medquote.models.catalog import Product
from medquote.services import catalog_service


@pytest.mark.parametrize(
    "raw, expected",
    [
        (" Hospital   Bed ", "hospital bed"),
        ("ECG\tMachine", "ecg machine"),
        ("X-Ray", "x-ray"),
    ],
)
def test_normalize_name(raw, expected):
    assert catalog_service.normalize_name(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Hospital Bed", "hospital-bed"),
        ("  Syringes (5ml) ", "syringes-5ml"),
        ("Blood Pressure / Monitor", "blood-pressure-monitor"),
    ],
)
def test_slugify(raw, expected):
    assert catalog_service.slugify(raw) == expected


async def _product_count(session) -> int:
    return (await session.execute(select(func.count(Product.id)))).scalar()


@pytest.mark.asyncio
async def test_create_product_resolves_slug_collisions(session, make):
    admin = await make.user("admin")
    category = await make.category()
    await make.product(category, "Hospital Bed")

    product = await catalog_service.create_product(
        session, admin, "Hospital-Bed", category.id
    )

    assert product.slug == "hospital-bed-2"
    assert product.normalized_name == "hospital-bed"


@pytest.mark.asyncio
async def test_duplicate_normalized_name_conflicts(session, make):
    admin = await make.user("admin")
    category = await make.category()
    await make.product(category, "Hospital Bed")

    with pytest.raises(ServiceError) as exc_info:
        await catalog_service.create_product(session, admin, "  hospital   BED", category.id)

    assert exc_info.value.code == CONFLICT


@pytest.mark.asyncio
async def test_create_product_needs_existing_category(session, make):
    admin = await make.user("admin")

    with pytest.raises(ServiceError) as exc_info:
        await catalog_service.create_product(session, admin, "Stethoscope", uuid.uuid4())

    assert exc_info.value.code == NOT_FOUND


@pytest.mark.asyncio
async def test_bulk_create_assigns_distinct_slugs(session, make):
    admin = await make.user("admin")
    category = await make.category()

    created = await catalog_service.bulk_create_products(
        session,
        admin,
        [
            {"name": "Suction Machine", "category_id": category.id},
            {"name": "Suction: Machine", "category_id": category.id},
        ],
    )

    assert [p.slug for p in created] == ["suction-machine", "suction-machine-2"]


@pytest.mark.parametrize(
    "second, code",
    [
        ({"name": "suction  machine"}, CONFLICT),
        ({"name": "Existing Monitor"}, CONFLICT),
        ({"name": "Pulse Oximeter", "category_id": uuid.uuid4()}, NOT_FOUND),
    ],
)
@pytest.mark.asyncio
async def test_bad_row_rejects_whole_batch(session, make, second, code):
    admin = await make.user("admin")
    category = await make.category()
    await make.product(category, "Existing Monitor")
    before = await _product_count(session)

    with pytest.raises(ServiceError) as exc_info:
        await catalog_service.bulk_create_products(
            session,
            admin,
            [
                {"name": "Suction Machine", "category_id": category.id},
                {"category_id": category.id, **second},
            ],
        )

    assert exc_info.value.code == code
    assert await _product_count(session) == before


@pytest.mark.asyncio
async def test_rename_regenerates_slug(session, make):
    admin = await make.user("admin")
    category = await make.category()
    product = await make.product(category, "Wheel Chair")

    updated = await catalog_service.update_product(
        session, admin, product.id, "Wheelchair (Folding)", category.id
    )

    assert updated.slug == "wheelchair-folding"
    assert updated.normalized_name == "wheelchair (folding)"


@pytest.mark.asyncio
async def test_referenced_product_cannot_be_deleted(session, make):
    admin = await make.user("admin")
    category = await make.category()
    product = await make.product(category)
    await make.rfq(await make.user("buyer"), (product, 1))

    with pytest.raises(ServiceError) as exc_info:
        await catalog_service.delete_product(session, admin, product.id)

    assert exc_info.value.code == CONFLICT


@pytest.mark.asyncio
async def test_unreferenced_product_is_deleted(session, make):
    admin = await make.user("admin")
    product = await make.product(await make.category())

    await catalog_service.delete_product(session, admin, product.id)

    assert await session.get(Product, product.id) is None


@pytest.mark.asyncio
async def test_category_with_products_cannot_be_deleted(session, make):
    admin = await make.user("admin")
    category = await make.category()
    await make.product(category)

    with pytest.raises(ServiceError) as exc_info:
        await catalog_service.delete_category(session, admin, category.id)

    assert exc_info.value.code == CONFLICT


@pytest.mark.asyncio
async def test_category_lookup_is_case_insensitive(session, make):
    admin = await make.user("admin")
    created = await catalog_service.create_category(session, admin, "Laboratory Supplies")

    found = await catalog_service.find_category_by_name(session, " laboratory SUPPLIES ")

    assert found.id == created.id
    assert created.slug == "laboratory-supplies"


@pytest.mark.asyncio
async def test_catalog_writes_are_admin_only(session, make):
    buyer = await make.user("buyer")
    category = await make.category()

    with pytest.raises(ServiceError) as exc_info:
        await catalog_service.create_product(session, buyer, "Gauze", category.id)

    assert exc_info.value.code == FORBIDDEN
