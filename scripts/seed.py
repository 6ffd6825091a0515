"""
Seed script: an admin, two hospitals with an approval chain, three vendors,
a small catalog and a few price-list entries.
Run from the project root: python -m scripts.seed
"""
import asyncio
import uuid

from sqlalchemy import select

from medquote.database import AsyncSessionLocal, engine
from medquote.models.catalog import Category, Product
from medquote.models.user import User
from medquote.models.vendor_quotation import VendorQuotation
from medquote.services.catalog_service import normalize_name, slugify

# ---------- Fixed UUIDs ----------

USER_ADMIN_ID = uuid.UUID("a0000000-0000-0000-0000-000000000001")
USER_HOSPITAL_ID = uuid.UUID("a0000000-0000-0000-0000-000000000101")
USER_HOSPITAL_MANAGER_ID = uuid.UUID("a0000000-0000-0000-0000-000000000102")
USER_HOSPITAL_DIRECTOR_ID = uuid.UUID("a0000000-0000-0000-0000-000000000103")
USER_CLINIC_ID = uuid.UUID("a0000000-0000-0000-0000-000000000104")
USER_VENDOR_ALPHA_ID = uuid.UUID("a0000000-0000-0000-0000-000000000201")
USER_VENDOR_BETA_ID = uuid.UUID("a0000000-0000-0000-0000-000000000202")
USER_VENDOR_GAMMA_ID = uuid.UUID("a0000000-0000-0000-0000-000000000203")

CAT_DIAGNOSTIC_ID = uuid.UUID("c0000000-0000-0000-0000-000000000001")
CAT_SURGICAL_ID = uuid.UUID("c0000000-0000-0000-0000-000000000002")
CAT_LAB_ID = uuid.UUID("c0000000-0000-0000-0000-000000000003")

PRODUCT_MONITOR_ID = uuid.UUID("f0000000-0000-0000-0000-000000000001")
PRODUCT_OXIMETER_ID = uuid.UUID("f0000000-0000-0000-0000-000000000002")
PRODUCT_SCALPEL_ID = uuid.UUID("f0000000-0000-0000-0000-000000000003")
PRODUCT_CENTRIFUGE_ID = uuid.UUID("f0000000-0000-0000-0000-000000000004")


def _product(product_id, name, category_id, description):
    return Product(
        id=product_id,
        name=name,
        normalized_name=normalize_name(name),
        slug=slugify(name),
        category_id=category_id,
        description=description,
    )


async def seed():
    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.id == USER_ADMIN_ID))
        if result.scalar_one_or_none():
            print("Seed data already exists. Skipping.")
            return

        # --- Users ---
        users = [
            User(id=USER_ADMIN_ID, auth_id="seed-admin", email="admin@medquote.example.com",
                 name="Platform Admin", role="admin", verified=True, status="approved"),
            User(id=USER_HOSPITAL_ID, auth_id="seed-hospital", email="procurement@stmarys.example.com",
                 name="Grace Wanjiku", role="buyer", verified=True, status="approved",
                 company_name="St. Mary's Hospital", phone="0712345678"),
            User(id=USER_HOSPITAL_MANAGER_ID, auth_id="seed-hospital-manager",
                 email="manager@stmarys.example.com", name="Peter Otieno", role="buyer",
                 verified=True, status="approved", company_name="St. Mary's Hospital",
                 organization_role="procurement_manager", approval_level=1),
            User(id=USER_HOSPITAL_DIRECTOR_ID, auth_id="seed-hospital-director",
                 email="director@stmarys.example.com", name="Dr. Amina Hassan", role="buyer",
                 verified=True, status="approved", company_name="St. Mary's Hospital",
                 organization_role="medical_director", approval_level=2,
                 can_approve_up_to_cents=5_000_000_00),
            User(id=USER_CLINIC_ID, auth_id="seed-clinic", email="orders@riverside.example.com",
                 name="Riverside Clinic", role="buyer", verified=False, status="pending",
                 company_name="Riverside Clinic"),
            User(id=USER_VENDOR_ALPHA_ID, auth_id="seed-vendor-alpha", email="sales@alphamed.example.com",
                 name="Alpha Medical", role="vendor", verified=True, status="approved",
                 company_name="Alpha Medical Supplies", phone="+254700000201",
                 categories=[str(CAT_DIAGNOSTIC_ID), str(CAT_LAB_ID)]),
            User(id=USER_VENDOR_BETA_ID, auth_id="seed-vendor-beta", email="info@betasurgical.example.com",
                 name="Beta Surgical", role="vendor", verified=True, status="approved",
                 company_name="Beta Surgical Ltd.", categories=[str(CAT_SURGICAL_ID)],
                 quotation_preference="registered_hospitals_only"),
            User(id=USER_VENDOR_GAMMA_ID, auth_id="seed-vendor-gamma", email="hello@gammalab.example.com",
                 name="Gamma Lab", role="vendor", verified=False, status="pending",
                 company_name="Gamma Lab Equipment", categories=[str(CAT_LAB_ID)]),
        ]
        db.add_all(users)
        await db.flush()

        # --- Catalog ---
        db.add_all([
            Category(id=CAT_DIAGNOSTIC_ID, name="Diagnostic Equipment", slug="diagnostic-equipment"),
            Category(id=CAT_SURGICAL_ID, name="Surgical Instruments", slug="surgical-instruments"),
            Category(id=CAT_LAB_ID, name="Laboratory Equipment", slug="laboratory-equipment"),
        ])
        await db.flush()
        db.add_all([
            _product(PRODUCT_MONITOR_ID, "Patient Monitor 12-inch", CAT_DIAGNOSTIC_ID,
                     "Multi-parameter bedside monitor with ECG, SpO2 and NIBP."),
            _product(PRODUCT_OXIMETER_ID, "Fingertip Pulse Oximeter", CAT_DIAGNOSTIC_ID,
                     "Portable SpO2 and pulse rate meter."),
            _product(PRODUCT_SCALPEL_ID, "Disposable Scalpel No. 22", CAT_SURGICAL_ID,
                     "Sterile single-use scalpel, box of 10."),
            _product(PRODUCT_CENTRIFUGE_ID, "Benchtop Centrifuge", CAT_LAB_ID,
                     "Six-place centrifuge up to 4000 rpm."),
        ])
        await db.flush()

        # --- Price lists ---
        db.add_all([
            VendorQuotation(vendor_id=USER_VENDOR_ALPHA_ID, product_id=PRODUCT_MONITOR_ID,
                            price_cents=185_000_00, quantity=1, payment_terms="credit",
                            delivery_time="2 weeks", warranty_period="1 year",
                            country_of_origin="Germany", brand="Medline"),
            VendorQuotation(vendor_id=USER_VENDOR_ALPHA_ID, product_id=PRODUCT_OXIMETER_ID,
                            price_cents=2_500_00, quantity=10, payment_terms="cash",
                            delivery_time="3 days", warranty_period="6 months"),
            VendorQuotation(vendor_id=USER_VENDOR_BETA_ID, product_id=PRODUCT_SCALPEL_ID,
                            price_cents=1_200_00, quantity=50, payment_terms="cash",
                            delivery_time="1 week", warranty_period="None"),
        ])

        await db.commit()
        print("Seed data inserted successfully!")
        print("  Users: 8 (1 admin, 4 buyers, 3 vendors)")
        print("  Categories: 3")
        print("  Products: 4")
        print("  Price-list entries: 3")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
