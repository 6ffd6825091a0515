import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from medquote.models.catalog import Category, Product
from medquote.schemas.common import iso


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    category_id: uuid.UUID
    description: str = ""
    image: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=100)
    specifications: Optional[str] = None


class ProductUpdate(ProductCreate):
    pass


class BulkProductCreate(BaseModel):
    products: List[ProductCreate]


class ProductResponse(BaseModel):
    id: str
    name: str
    slug: str
    category_id: str
    category_name: Optional[str] = None
    description: str
    image: Optional[str] = None
    sku: Optional[str] = None
    specifications: Optional[str] = None
    created_at: str


def product_response(product: Product, category_name: Optional[str] = None) -> ProductResponse:
    return ProductResponse(
        id=str(product.id),
        name=product.name,
        slug=product.slug,
        category_id=str(product.category_id),
        category_name=category_name,
        description=product.description or "",
        image=product.image,
        sku=product.sku,
        specifications=product.specifications,
        created_at=iso(product.created_at) or "",
    )


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=100)


class CategoryUpdate(CategoryCreate):
    pass


class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    created_at: str


def category_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=str(category.id),
        name=category.name,
        slug=category.slug,
        description=category.description,
        icon=category.icon,
        created_at=iso(category.created_at) or "",
    )


class CatalogScanRequest(BaseModel):
    image_url: str = Field(..., min_length=1)
    context: Optional[str] = None
