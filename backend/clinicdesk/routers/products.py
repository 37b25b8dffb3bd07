"""Service catalogue: treatments and items that can be put on an order.

Endpoints:
    GET   /api/products/        List products (optionally for one clinic)
    POST  /api/products/        Create product
    PATCH /api/products/{id}    Update product (price changes do not touch existing orders)
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission
from clinicdesk.database import get_db
from clinicdesk.middleware.exceptions import ResourceNotFoundError
from clinicdesk.models.product import Product
from clinicdesk.models.user import User
from clinicdesk.schemas.product import ProductCreate, ProductOut, ProductUpdate
from clinicdesk.utils.activity import log_activity

router = APIRouter()


@router.get("/", response_model=list[ProductOut])
async def list_products(
    clinic_id: str | None = Query(None, description="Include products of this clinic plus shared ones"),
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_permission("product.read")),
):
    query = select(Product)
    if clinic_id:
        query = query.where(or_(Product.clinic_id == clinic_id, Product.clinic_id.is_(None)))
    if not include_inactive:
        query = query.where(Product.is_active == True)  # noqa: E712
    result = await db.execute(query.order_by(Product.name))
    return [ProductOut.model_validate(p) for p in result.scalars().all()]


@router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("product.write")),
):
    if body.clinic_id:
        ensure_clinic_access(user, body.clinic_id)

    existing = await db.execute(select(Product).where(Product.code == body.code))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail=f"Product code '{body.code}' already exists")

    product = Product(**body.model_dump(), is_active=True)
    db.add(product)
    await db.flush()

    await log_activity(
        db, user,
        "created",
        entity=product,
        summary=f"Added {product.name} to the catalogue",
    )
    return ProductOut.model_validate(product)


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: str,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("product.write")),
):
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise ResourceNotFoundError("Product", product_id)

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(product, key, value)
    await db.flush()

    await log_activity(
        db, user,
        "updated",
        entity=product,
        summary=f"Updated product {product.code}",
        details={"fields": sorted(updates)},
    )
    return ProductOut.model_validate(product)
