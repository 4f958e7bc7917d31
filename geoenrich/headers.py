"""
Attribute vocabulary and the request headers they are written to
"""

from typing import Dict
from urllib.parse import quote

COUNTRY = "country"
STATE = "state"
CITY = "city"
POSTAL = "postal"
LATITUDE = "latitude"
LONGITUDE = "longitude"
LOCATION_ACCURACY = "location_accuracy"
USER_TYPE = "user_type"
CONNECTION_TYPE = "connection_type"
ISP = "isp"
PROXY_LEGAL = "proxy_legal"
ANONYMOUS_IP = "anonymous_ip"
ANONYMOUS_VPN = "anonymous_vpn"
TOR_EXIT_NODE = "tor_exit_node"

HEADER_NAMES: Dict[str, str] = {
    COUNTRY: "X-COUNTRY",
    STATE: "X-STATE",
    CITY: "X-CITY",
    POSTAL: "X-POSTAL",
    LATITUDE: "X-LATITUDE",
    LONGITUDE: "X-LONGITUDE",
    LOCATION_ACCURACY: "X-LOCATION-ACCURACY",
    USER_TYPE: "X-USER-TYPE",
    CONNECTION_TYPE: "X-CONNECTION-TYPE",
    ISP: "X-ISP",
    PROXY_LEGAL: "X-PROXY-LEGAL",
    ANONYMOUS_IP: "X-ANONYMOUS-IP",
    ANONYMOUS_VPN: "X-ANONYMOUS-VPN",
    TOR_EXIT_NODE: "X-TOR",
}


def header_name(attribute: str) -> str:
    """Header name for an attribute; raises KeyError outside the vocabulary"""
    return HEADER_NAMES[attribute]


# printable ASCII minus '%', which marks an escape
_HEADER_SAFE = " !\"#$&'()*+,/:;<=>?@[\\]^`{|}"


def header_value(value: str) -> str:
    """
    Header-safe form of an attribute value.

    Header values travel as latin-1; anything outside it is percent-encoded
    as UTF-8 so the value survives instead of failing the request.
    """
    try:
        value.encode("latin-1")
    except UnicodeEncodeError:
        return quote(value, safe=_HEADER_SAFE)
    return value
