from fastapi import APIRouter, HTTPException, Query, Request
from ..errors import AddressParseError
from ..filter import parse_address
from ..headers import HEADER_NAMES

router = APIRouter(prefix="/geoip", tags=["geoip"])


def _request_filter(request: Request):
    return request.app.state.geoip_filter


@router.get("/status")
def geoip_status(request: Request):
    request_filter = _request_filter(request)
    return {
        "mode": request_filter.mode.value,
        "remote_ip_header": request_filter.remote_ip_header,
        "resolver": request_filter.resolver.get_status(),
    }


@router.get("/lookup")
def geoip_lookup(request: Request, ip: str = Query(...)):
    """Attributes the filter would write for ``ip``"""
    try:
        address = parse_address(ip.strip())
    except AddressParseError as e:
        raise HTTPException(400, str(e))
    request_filter = _request_filter(request)
    return {"ip": str(address), "mode": request_filter.mode.value,
            "attributes": request_filter.enrich(address)}


@router.get("/echo")
def geoip_echo(request: Request):
    """Enrichment headers as seen by a downstream handler"""
    return {
        name: request.headers[header]
        for name, header in HEADER_NAMES.items()
        if header in request.headers
    }
