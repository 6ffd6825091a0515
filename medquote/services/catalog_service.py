"""
Catalog service: products and categories.

Product names are deduplicated on a normalised form (lower-cased, runs of
whitespace collapsed, trimmed) so " Hospital Bed " and "hospital bed" are the
same product. Slugs are derived from the name and disambiguated with a
numeric suffix; a rename regenerates the slug.
"""

import re
import uuid
from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.errors import bad_request, conflict, not_found
from medquote.services.guards import check_role
from medquote.models.catalog import Category, Product
from medquote.models.rfq import RfqItem
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation

logger = structlog.get_logger()


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name).strip().lower()


def slugify(text: str) -> str:
    slug = text.lower().strip()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


async def _unique_slug(
    session: AsyncSession,
    model,
    base: str,
    exclude_id: Optional[uuid.UUID] = None,
    reserved: Iterable[str] = (),
) -> str:
    base = base or "item"
    q = select(model.slug).where(
        (model.slug == base) | (model.slug.like(f"{base}-%"))
    )
    if exclude_id is not None:
        q = q.where(model.id != exclude_id)
    taken = {row[0] for row in (await session.execute(q)).all()}
    taken.update(reserved)
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


async def _get_category(session: AsyncSession, category_id: uuid.UUID) -> Category:
    category = await session.get(Category, category_id)
    if not category:
        raise not_found("Category not found")
    return category


async def _existing_normalized_names(
    session: AsyncSession, names: Iterable[str], exclude_id: Optional[uuid.UUID] = None
) -> set[str]:
    names = list(names)
    if not names:
        return set()
    q = select(Product.normalized_name).where(Product.normalized_name.in_(names))
    if exclude_id is not None:
        q = q.where(Product.id != exclude_id)
    return {row[0] for row in (await session.execute(q)).all()}


# ── Products ────────────────────────────────────────────────


async def list_products(
    session: AsyncSession,
    category_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
) -> list[tuple[Product, Optional[str]]]:
    """Products with their category name, alphabetical."""
    q = select(Product, Category.name).outerjoin(
        Category, Category.id == Product.category_id
    )
    if category_id is not None:
        q = q.where(Product.category_id == category_id)
    if search:
        q = q.where(Product.normalized_name.contains(normalize_name(search)))
    result = await session.execute(q.order_by(Product.name))
    return [(row[0], row[1]) for row in result.all()]


async def get_product(session: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await session.get(Product, product_id)
    if not product:
        raise not_found("Product not found")
    return product


async def get_product_by_slug(session: AsyncSession, slug: str) -> Product:
    result = await session.execute(select(Product).where(Product.slug == slug))
    product = result.scalar_one_or_none()
    if not product:
        raise not_found("Product not found")
    return product


async def create_product(
    session: AsyncSession,
    admin: User,
    name: str,
    category_id: uuid.UUID,
    description: str = "",
    image: Optional[str] = None,
    sku: Optional[str] = None,
    specifications: Optional[str] = None,
) -> Product:
    check_role(admin, "admin", message="Only admins can create products")
    normalized = normalize_name(name)
    if not normalized:
        raise bad_request("Product name is required")
    await _get_category(session, category_id)
    if await _existing_normalized_names(session, [normalized]):
        raise conflict(f"A product named '{name.strip()}' already exists")

    product = Product(
        name=name.strip(),
        normalized_name=normalized,
        slug=await _unique_slug(session, Product, slugify(name)),
        category_id=category_id,
        description=description,
        image=image,
        sku=sku,
        specifications=specifications,
    )
    session.add(product)
    await session.flush()
    logger.info("product_created", product_id=str(product.id), slug=product.slug)
    return product


async def bulk_create_products(
    session: AsyncSession, admin: User, products: list[dict]
) -> list[Product]:
    """
    Create many products at once.

    The whole batch is validated first (categories exist, names are new and
    unique within the batch); a single bad row rejects the batch before
    anything is written.
    """
    check_role(admin, "admin", message="Only admins can bulk create products")
    if not products:
        raise bad_request("No products supplied")

    normalized = []
    seen: set[str] = set()
    for row in products:
        norm = normalize_name(row.get("name") or "")
        if not norm:
            raise bad_request("Product name is required")
        if norm in seen:
            raise conflict(f"Duplicate product in batch: '{row['name'].strip()}'")
        seen.add(norm)
        normalized.append(norm)

    category_ids = {row["category_id"] for row in products}
    found = await session.execute(select(Category.id).where(Category.id.in_(category_ids)))
    missing = category_ids - {r[0] for r in found.all()}
    if missing:
        raise not_found(f"Category not found: {sorted(str(m) for m in missing)[0]}")

    existing = await _existing_normalized_names(session, normalized)
    if existing:
        raise conflict(f"Products already exist: {', '.join(sorted(existing))}")

    created = []
    used_slugs: set[str] = set()
    for row, norm in zip(products, normalized):
        slug = await _unique_slug(session, Product, slugify(row["name"]), reserved=used_slugs)
        used_slugs.add(slug)
        product = Product(
            name=row["name"].strip(),
            normalized_name=norm,
            slug=slug,
            category_id=row["category_id"],
            description=row.get("description") or "",
            image=row.get("image"),
            sku=row.get("sku"),
            specifications=row.get("specifications"),
        )
        session.add(product)
        created.append(product)
    await session.flush()
    logger.info("products_bulk_created", count=len(created))
    return created


async def update_product(
    session: AsyncSession,
    admin: User,
    product_id: uuid.UUID,
    name: str,
    category_id: uuid.UUID,
    description: str = "",
    image: Optional[str] = None,
    sku: Optional[str] = None,
    specifications: Optional[str] = None,
) -> Product:
    check_role(admin, "admin", message="Only admins can update products")
    product = await get_product(session, product_id)
    await _get_category(session, category_id)

    normalized = normalize_name(name)
    if not normalized:
        raise bad_request("Product name is required")
    if normalized != product.normalized_name:
        if await _existing_normalized_names(session, [normalized], exclude_id=product.id):
            raise conflict(f"A product named '{name.strip()}' already exists")
        product.slug = await _unique_slug(
            session, Product, slugify(name), exclude_id=product.id
        )
    product.name = name.strip()
    product.normalized_name = normalized
    product.category_id = category_id
    product.description = description
    product.image = image
    product.sku = sku
    product.specifications = specifications
    await session.flush()
    logger.info("product_updated", product_id=str(product.id))
    return product


async def delete_product(session: AsyncSession, admin: User, product_id: uuid.UUID):
    check_role(admin, "admin", message="Only admins can delete products")
    product = await get_product(session, product_id)
    for model in (RfqItem, VendorQuotation):
        in_use = await session.execute(
            select(func.count(model.id)).where(model.product_id == product_id)
        )
        if (in_use.scalar() or 0) > 0:
            raise conflict("Product is referenced by RFQs or price lists and cannot be deleted")
    await session.delete(product)
    await session.flush()
    logger.info("product_deleted", product_id=str(product_id))


# ── Categories ──────────────────────────────────────────────


async def list_categories(session: AsyncSession) -> list[Category]:
    result = await session.execute(select(Category).order_by(Category.name))
    return list(result.scalars().all())


async def create_category(
    session: AsyncSession,
    admin: User,
    name: str,
    description: Optional[str] = None,
    icon: Optional[str] = None,
) -> Category:
    check_role(admin, "admin", message="Only admins can create categories")
    if not name.strip():
        raise bad_request("Category name is required")
    category = Category(
        name=name.strip(),
        slug=await _unique_slug(session, Category, slugify(name)),
        description=description,
        icon=icon,
    )
    session.add(category)
    await session.flush()
    logger.info("category_created", category_id=str(category.id), slug=category.slug)
    return category


async def update_category(
    session: AsyncSession,
    admin: User,
    category_id: uuid.UUID,
    name: str,
    description: Optional[str] = None,
    icon: Optional[str] = None,
) -> Category:
    check_role(admin, "admin", message="Only admins can update categories")
    category = await _get_category(session, category_id)
    if not name.strip():
        raise bad_request("Category name is required")
    if name.strip() != category.name:
        category.slug = await _unique_slug(
            session, Category, slugify(name), exclude_id=category.id
        )
    category.name = name.strip()
    category.description = description
    category.icon = icon
    await session.flush()
    return category


async def delete_category(session: AsyncSession, admin: User, category_id: uuid.UUID):
    check_role(admin, "admin", message="Only admins can delete categories")
    category = await _get_category(session, category_id)
    in_use = await session.execute(
        select(func.count(Product.id)).where(Product.category_id == category_id)
    )
    if (in_use.scalar() or 0) > 0:
        raise conflict("Category still has products; move or delete them first")
    await session.delete(category)
    await session.flush()
    logger.info("category_deleted", category_id=str(category_id))


async def find_category_by_name(session: AsyncSession, name: str) -> Optional[Category]:
    result = await session.execute(
        select(Category).where(func.lower(Category.name) == name.strip().lower())
    )
    return result.scalars().first()
