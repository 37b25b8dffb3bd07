"""Client (patient) management router.

Endpoints:
    GET    /api/clients/          Paginated list (clinic filter, search)
    POST   /api/clients/          Create client
    GET    /api/clients/{id}      Client detail
    PATCH  /api/clients/{id}      Update client
    DELETE /api/clients/{id}      Toggle active flag (deactivate / reactivate)
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicdesk.auth.deps import ensure_clinic_access, require_permission, visible_clinic_ids
from clinicdesk.database import get_db
from clinicdesk.middleware.exceptions import ResourceNotFoundError
from clinicdesk.models.client import Client
from clinicdesk.models.user import User
from clinicdesk.schemas.client import ClientCreate, ClientOut, ClientUpdate
from clinicdesk.schemas.common import PaginatedResponse
from clinicdesk.services.orders import get_clinic
from clinicdesk.utils.activity import log_activity

router = APIRouter()


async def _get_client(db: AsyncSession, client_id: str, user: User) -> Client:
    result = await db.execute(select(Client).where(Client.id == client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise ResourceNotFoundError("Client", client_id)
    ensure_clinic_access(user, client.clinic_id)
    return client


@router.get("/", response_model=PaginatedResponse[ClientOut])
async def list_clients(
    clinic_id: str | None = Query(None),
    search: str | None = Query(None, description="Name, email or phone"),
    include_inactive: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("client.read")),
):
    """List clients (active by default), ordered by last name."""
    base = select(Client)
    if clinic_id:
        ensure_clinic_access(user, clinic_id)
        base = base.where(Client.clinic_id == clinic_id)
    else:
        allowed = visible_clinic_ids(user)
        if allowed is not None:
            base = base.where(Client.clinic_id.in_(allowed))
    if not include_inactive:
        base = base.where(Client.is_active == True)  # noqa: E712
    if search:
        term = f"%{search.strip()}%"
        base = base.where(or_(
            Client.first_name.ilike(term),
            Client.last_name.ilike(term),
            Client.email.ilike(term),
            Client.phone.ilike(term),
        ))

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await db.execute(
        base.order_by(Client.last_name, Client.first_name).limit(limit).offset(offset)
    )
    items = [ClientOut.model_validate(c) for c in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
async def create_client(
    body: ClientCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("client.write")),
):
    ensure_clinic_access(user, body.clinic_id)
    await get_clinic(db, body.clinic_id)

    client = Client(**body.model_dump(), is_active=True)
    db.add(client)
    await db.flush()

    await log_activity(
        db, user,
        "created",
        entity=client,
        summary=f"Registered client {client.full_name}",
    )
    return ClientOut.model_validate(client)


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("client.read")),
):
    return ClientOut.model_validate(await _get_client(db, client_id, user))


@router.patch("/{client_id}", response_model=ClientOut)
async def update_client(
    client_id: str,
    body: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("client.write")),
):
    client = await _get_client(db, client_id, user)

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(client, key, value)
    await db.flush()

    await log_activity(
        db, user,
        "updated",
        entity=client,
        summary=f"Updated client {client.full_name}",
        details={"fields": sorted(updates)},
    )
    return ClientOut.model_validate(client)


@router.delete("/{client_id}", response_model=ClientOut)
async def toggle_client_active(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("client.write")),
):
    """Deactivate an active client, or reactivate an inactive one."""
    client = await _get_client(db, client_id, user)

    client.is_active = not client.is_active
    await db.flush()

    await log_activity(
        db, user,
        "reactivated" if client.is_active else "deactivated",
        entity=client,
        summary=f"{'Reactivated' if client.is_active else 'Deactivated'} client {client.full_name}",
    )
    return ClientOut.model_validate(client)
