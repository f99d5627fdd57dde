"""
Case Routes — File a case, read it back, and (admin) remove it.
"""
from fastapi import APIRouter, Depends

from casepay.dependencies import get_case_service, get_current_actor, require_admin
from casepay.schemas.schemas import CaseCreateRequest, CaseResponse, CaseDeleteResponse
from casepay.services.access import Actor
from casepay.services.case_service import CaseService

router = APIRouter(prefix="/api/cases", tags=["Cases"])


@router.post("", response_model=CaseResponse, status_code=201)
def create_case(
    payload: CaseCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: CaseService = Depends(get_case_service),
):
    """File a new case. The case number is allocated server-side."""
    return service.create_case(
        actor,
        title=payload.title,
        plaintiffs=payload.plaintiffs,
        defendants=payload.defendants,
        case_type=payload.case_type,
        description=payload.description,
    )


@router.get("/{case_id}", response_model=CaseResponse)
def get_case(
    case_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CaseService = Depends(get_case_service),
):
    return service.get_case(case_id, actor)


@router.delete("/{case_id}", response_model=CaseDeleteResponse)
def delete_case(
    case_id: str,
    admin: Actor = Depends(require_admin),
    service: CaseService = Depends(get_case_service),
):
    """Delete a case with no payments; close one that has payment history."""
    closed = service.close_or_delete(case_id, admin)
    if closed is None:
        return CaseDeleteResponse(case_id=case_id, deleted=True, closed=False, message="Case deleted")
    return CaseDeleteResponse(
        case_id=case_id,
        deleted=False,
        closed=True,
        message="Case has payment history and was closed instead of deleted",
    )
