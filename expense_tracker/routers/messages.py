from fastapi import APIRouter, Depends

from ..core.context import RequestContext, get_request_context
from ..schemas.expense import MessageRead

router = APIRouter(
    tags=["messages"],
)


@router.get("/message", response_model=MessageRead)
def pop_message(ctx: RequestContext = Depends(get_request_context)):
    """Return the pending status message and clear it."""
    return MessageRead(message=ctx.pop_message())
