# ============================================================================
# MES Dashboard Store — REST Routes
# ============================================================================
# GET / POST / PUT /{id} / DELETE /{id} for every entity kind.
# Equipment mutations are also fanned out to realtime subscribers.
# Registration via register_store_routes(app).
# ============================================================================

import logging
from typing import Any, Dict

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from app.errors import EntityNotFound
from app.realtime.broadcaster import get_broadcaster

from .engine import coerce_id, get_store
from .kinds import ALL_KINDS, EntityKind

logger = logging.getLogger("store.routes")


async def _read_body(request: Request) -> Dict[str, Any]:
    """Parse a JSON object body; an empty body is an empty object."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return data


def build_router(kind: EntityKind) -> APIRouter:
    """Create the CRUD router for one entity kind."""
    router = APIRouter(prefix=kind.route, tags=[kind.name])

    @router.get("")
    async def list_entities():
        return get_store(kind.name).list()

    @router.post("", status_code=201)
    async def create_entity(request: Request):
        data = await _read_body(request)
        entity = get_store(kind.name).create(data)
        if kind.broadcasts:
            await get_broadcaster().equipment_added(entity)
        return JSONResponse(entity, status_code=201)

    @router.put("/{entity_id}")
    async def update_entity(entity_id: str, request: Request):
        data = await _read_body(request)
        parsed = coerce_id(entity_id)
        if parsed is None:
            return Response(status_code=404)
        try:
            entity = get_store(kind.name).update(parsed, data)
        except EntityNotFound:
            return Response(status_code=404)
        if kind.broadcasts:
            await get_broadcaster().equipment_updated(entity)
        return entity

    @router.delete("/{entity_id}", status_code=204)
    async def delete_entity(entity_id: str):
        parsed = coerce_id(entity_id)
        if parsed is not None:
            get_store(kind.name).delete(parsed)
            if kind.broadcasts:
                await get_broadcaster().equipment_deleted(parsed)
        return Response(status_code=204)

    return router


def register_store_routes(app: FastAPI):
    """Mount the CRUD routers for equipment, process stages and lines."""
    for kind in ALL_KINDS:
        app.include_router(build_router(kind))
    logger.info("[Store] Routes registered")
