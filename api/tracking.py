"""
Public Tracking Endpoints

- GET  /t/{code}           click: always redirects to the configured page
- GET  /t/{code}/open.gif  open: always a 1x1 transparent GIF
- POST /t/{code}/convert   conversion: always 204

Responses never depend on whether the code exists or the write succeeded,
so the endpoints can't be used to probe for valid codes.
"""

import logging
from typing import Any, Dict
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from siteaudit.database import get_db
from siteaudit.tracking import record_click, record_conversion, record_open
from siteaudit.utils.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/t", tags=["Tracking"])


# Smallest transparent GIF
TRANSPARENT_GIF = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04\x01\x00"
    b"\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
}


def _request_details(request: Request) -> Dict[str, Any]:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (
        request.headers.get("x-real-ip") or (request.client.host if request.client else None)
    )
    return {
        "ip_address": ip_address,
        "user_agent": request.headers.get("user-agent"),
        "referer": request.headers.get("referer"),
    }


def _record(db: Session, recorder, code: str, request: Request) -> None:
    """Run a recorder and commit; failures are logged, never raised."""
    try:
        recorder(db, code, _request_details(request))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Tracking error for code {code!r}: {e}")


def _redirect_url(code: str) -> str:
    base = get_settings().TRACKING_REDIRECT_URL
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode({'ref': code})}"


@router.get("/{code}")
def track_click(code: str, request: Request, db: Session = Depends(get_db)):
    """Record a click and redirect."""
    _record(db, record_click, code, request)
    return RedirectResponse(url=_redirect_url(code), status_code=307, headers=NO_CACHE_HEADERS)


@router.get("/{code}/open.gif")
def track_open(code: str, request: Request, db: Session = Depends(get_db)):
    """Record an open and return the pixel."""
    _record(db, record_open, code, request)
    return Response(content=TRANSPARENT_GIF, media_type="image/gif", headers=NO_CACHE_HEADERS)


@router.post("/{code}/convert", status_code=204)
def track_conversion(code: str, request: Request, db: Session = Depends(get_db)):
    """Record a conversion from the landing page."""
    _record(db, record_conversion, code, request)
    return Response(status_code=204)
