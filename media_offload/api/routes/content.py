"""
Content rewriting endpoint.

Post bodies and other rich text embed asset URLs directly. Before the host
renders such content it can pass it through here to point offloaded assets
at object storage.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ..dependencies import AuthenticatedUser, RewriterDep

logger = logging.getLogger(__name__)

router = APIRouter()


class ContentRequest(BaseModel):
    content: str = Field(description="HTML or text containing local upload URLs")


class ContentResponse(BaseModel):
    content: str = Field(description="The same content with offloaded asset URLs rewritten")
    changed: bool


@router.post(
    "/rewrite",
    response_model=ContentResponse,
    status_code=status.HTTP_200_OK,
    summary="Rewrite asset URLs in content",
)
def rewrite_content(
    request: ContentRequest,
    api_key: AuthenticatedUser = None,
    rewriter: RewriterDep = None,
) -> ContentResponse:
    rewritten = rewriter.rewrite_content(request.content)
    return ContentResponse(content=rewritten, changed=rewritten != request.content)
