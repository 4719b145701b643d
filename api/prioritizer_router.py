"""
Prioritizer API Router - REST endpoints over PrioritizerService.

Provides endpoints for:
- Item listing, bulk add, scoring and activation
- Notes and confidence surveys
- Stage navigation and lock mode
- Bucket configuration
- Results ordering and CSV export
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from api.response_models import (
    ActiveRequest,
    AddItemRequest,
    BucketFieldRequest,
    BulkAddRequest,
    DetailResponse,
    HealthResponse,
    ListResponse,
    LockRequest,
    MutationResponse,
    NoteRequest,
    ReorderRequest,
    ResetRequest,
    SetPropertyRequest,
    StageRequest,
    SurveyRequest,
)
from prioritizer import __version__
from prioritizer.service import OperationResult, PrioritizerService

logger = logging.getLogger(__name__)

prioritizer_router = APIRouter(tags=["Prioritizer"])


def get_service(request: Request) -> PrioritizerService:
    return request.app.state.service


def _unwrap(result: OperationResult) -> dict:
    """Turn a failed result into an HTTPException; pass successes through."""
    if not result.success:
        error = result.error or "Operation failed"
        not_found = result.error_kind == "not_found" or "not found" in error.lower()
        raise HTTPException(status_code=404 if not_found else 400, detail=error)
    return result.to_dict()


# ==== Health ====


@prioritizer_router.get("/health", response_model=HealthResponse)
def health() -> dict:
    return {"status": "healthy", "version": __version__, "timestamp": datetime.now().isoformat()}


# ==== State ====


@prioritizer_router.get("/state", response_model=DetailResponse)
def get_state(service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.get_app_state())["state"]


# ==== Items ====


@prioritizer_router.get("/items", response_model=ListResponse)
def list_items(service: PrioritizerService = Depends(get_service)) -> dict:
    items = _unwrap(service.get_items())["items"]
    return {"items": items, "total": len(items)}


@prioritizer_router.get("/results", response_model=ListResponse)
def list_results(service: PrioritizerService = Depends(get_service)) -> dict:
    items = _unwrap(service.get_results())["items"]
    return {"items": items, "total": len(items)}


@prioritizer_router.post("/items", response_model=MutationResponse)
def add_item(body: AddItemRequest, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.add_item(body.name, body.link))


@prioritizer_router.post("/items/bulk", response_model=MutationResponse)
def bulk_add_items(body: BulkAddRequest, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.bulk_add_items(body.text))


@prioritizer_router.get("/items/{item_id}", response_model=DetailResponse)
def get_item(item_id: str, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.get_item(item_id))["item"]


@prioritizer_router.delete("/items/{item_id}", response_model=MutationResponse)
def remove_item(item_id: str, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.remove_item(item_id))


@prioritizer_router.put("/items/{item_id}/property", response_model=MutationResponse)
def set_item_property(
    item_id: str, body: SetPropertyRequest, service: PrioritizerService = Depends(get_service)
) -> dict:
    return _unwrap(service.set_item_property(item_id, body.dimension, body.value))


@prioritizer_router.put("/items/{item_id}/active", response_model=MutationResponse)
def set_item_active(
    item_id: str, body: ActiveRequest, service: PrioritizerService = Depends(get_service)
) -> dict:
    if body.active:
        return _unwrap(service.set_item_active(item_id))
    return _unwrap(service.set_item_inactive(item_id))


# ==== Notes ====


@prioritizer_router.get("/items/{item_id}/notes", response_model=MutationResponse)
def get_notes(item_id: str, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.get_item_notes(item_id))


@prioritizer_router.post("/items/{item_id}/notes", response_model=MutationResponse)
def add_note(
    item_id: str, body: NoteRequest, service: PrioritizerService = Depends(get_service)
) -> dict:
    return _unwrap(service.add_item_note(item_id, body.text))


@prioritizer_router.put("/items/{item_id}/notes/{index}", response_model=MutationResponse)
def update_note(
    item_id: str, index: int, body: NoteRequest, service: PrioritizerService = Depends(get_service)
) -> dict:
    return _unwrap(service.update_item_note(item_id, index, body.text))


@prioritizer_router.delete("/items/{item_id}/notes/{index}", response_model=MutationResponse)
def delete_note(item_id: str, index: int, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.delete_item_note(item_id, index))


# ==== Confidence survey ====


@prioritizer_router.get("/items/{item_id}/survey", response_model=MutationResponse)
def get_survey(item_id: str, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.get_confidence_survey(item_id))


@prioritizer_router.put("/items/{item_id}/survey", response_model=MutationResponse)
def submit_survey(
    item_id: str, body: SurveyRequest, service: PrioritizerService = Depends(get_service)
) -> dict:
    return _unwrap(service.submit_confidence_survey(item_id, body.model_dump()))


@prioritizer_router.delete("/items/{item_id}/survey", response_model=MutationResponse)
def delete_survey(item_id: str, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.delete_confidence_survey(item_id))


@prioritizer_router.get("/confidence", response_model=DetailResponse)
def get_confidence_tables(service: PrioritizerService = Depends(get_service)) -> dict:
    return {
        "weights": _unwrap(service.get_confidence_weights())["weights"],
        "labels": _unwrap(service.get_confidence_level_labels())["labels"],
    }


# ==== Stages ====


@prioritizer_router.get("/stages", response_model=DetailResponse)
def get_stage_navigation(service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.get_stage_navigation_state())


@prioritizer_router.get("/stages/buttons", response_model=DetailResponse)
def get_button_states(service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.get_button_states())


@prioritizer_router.post("/stages/advance", response_model=MutationResponse)
def advance_stage(service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.advance_stage())


@prioritizer_router.post("/stages/back", response_model=MutationResponse)
def back_stage(service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.back_stage())


@prioritizer_router.post("/stages/navigate", response_model=MutationResponse)
def navigate_to_stage(body: StageRequest, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.set_current_stage(body.stage))


@prioritizer_router.put("/lock", response_model=MutationResponse)
def set_locked(body: LockRequest, service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.set_locked(body.locked))


# ==== Buckets ====


@prioritizer_router.put("/buckets/{dimension}/{level}/{field_name}", response_model=MutationResponse)
def update_bucket_field(
    dimension: str,
    level: int,
    field_name: str,
    body: BucketFieldRequest,
    service: PrioritizerService = Depends(get_service),
) -> dict:
    return _unwrap(service.update_bucket_field(dimension, level, field_name, body.value))


# ==== Sequence ====


@prioritizer_router.post("/sequence/{item_id}/move", response_model=MutationResponse)
def reorder_item(
    item_id: str, body: ReorderRequest, service: PrioritizerService = Depends(get_service)
) -> dict:
    return _unwrap(service.reorder_item_sequence(item_id, body.direction))


@prioritizer_router.post("/sequence/reset", response_model=MutationResponse)
def reset_results_order(service: PrioritizerService = Depends(get_service)) -> dict:
    return _unwrap(service.reset_results_order())


# ==== Lifecycle / export ====


@prioritizer_router.post("/reset", response_model=MutationResponse)
def reset(body: ResetRequest, service: PrioritizerService = Depends(get_service)) -> dict:
    if body.scope == "items":
        return _unwrap(service.clear_item_data_only())
    if body.scope == "settings":
        return _unwrap(service.clear_all_data(clear_settings=True))
    if body.scope == "all":
        return _unwrap(service.clear_all_data())
    raise HTTPException(status_code=400, detail="Invalid scope. Supported: all, items, settings")


@prioritizer_router.get("/export")
def export_csv(service: PrioritizerService = Depends(get_service)) -> Response:
    filename, content = service.export_csv()
    logger.info("CSV export %s", filename)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
