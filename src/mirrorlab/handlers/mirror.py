"""
=============================================================================
MIRROR HANDLER
=============================================================================

POST /post answers with a JSON description of the request it received.
Point a form, a curl command or a test client at it and read back exactly
what arrived on the wire.

=============================================================================
RESPONSE SHAPE
=============================================================================

    POST /post?param1=value1 HTTP/1.1
    Host: localhost:3000
    Content-Type: application/x-www-form-urlencoded

    custname=John+Doe&topping=bacon&topping=cheese

                              │
                              ▼
    {
      "args":    {"param1": "value1"},              ← last value per key
      "headers": {"Host": ["localhost:3000"],       ← always lists
                  "Content-type": ["application/x-www-form-urlencoded"],
                  ...},
      "method":  "POST",
      "origin":  "127.0.0.1",                       ← client IP / "unknown"
      "url":     "http://localhost:3000/post?param1=value1",
      "data":    "custname=John+Doe&topping=bacon&topping=cheese",
      "files":   {},
      "form":    {"custname": ["John Doe"],         ← all values per key
                  "topping": ["bacon", "cheese"]},
      "json":    null
    }

=============================================================================
HEADER NAME SHAPING
=============================================================================

    received          lowercased        first char upper
    ────────────────  ────────────────  ────────────────
    Content-Type   →  content-type   →  Content-type
    X-Custom-Header → x-custom-header → X-custom-header
    HOST           →  host           →  Host

Only the very first character is upper-cased. Clients that read
headers["Content-type"] depend on this exact spelling.

=============================================================================
BODY INTERPRETATION
=============================================================================

The declared Content-Type is checked by substring, in this order:

    contains "application/json"                   → json = json.loads(body)
                                                     (any failure → null)
    contains "application/x-www-form-urlencoded"  → form = parse_qs(body)
    anything else                                 → form = {}, json = null

At most one of form/json is ever populated, and for other content types
(text/plain, multipart, none at all) neither is. "data" is always the raw
body text, whatever happened above.

=============================================================================
INTERVIEW QUESTIONS ABOUT ECHO ENDPOINTS
=============================================================================

Q: "Why is args single-valued but form multi-valued?"
A: "It mirrors what well-known echo services return, and clients were
   written against that. ?a=1&a=2 shows up as {"a": "2"} in args while
   a=1&a=2 in a form body shows up as {"a": ["1", "2"]}."

Q: "Why reject NaN in JSON bodies?"
A: "json.loads accepts NaN and Infinity by default but they are not JSON.
   Echoing them back would produce output other JSON parsers choke on,
   so they count as invalid JSON and json stays null."

=============================================================================
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, parse_qsl

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
WILDCARD_HOSTS = ("0.0.0.0", "", "::")


def shape_header_name(name: str) -> str:
    """Lowercase a header name, then upper-case its first character."""
    name = name.lower()
    return name[:1].upper() + name[1:]


def mirror_headers(request: HTTPRequest) -> Dict[str, List[str]]:
    """Every header under its shaped name, values in arrival order."""
    headers: Dict[str, List[str]] = {}
    for name, value in request.headers.items():
        headers.setdefault(shape_header_name(name), []).append(value)
    return headers


def mirror_args(query_string: str) -> Dict[str, str]:
    # dict() keeps the last value for a repeated key
    return dict(parse_qsl(query_string, keep_blank_values=True))


def parse_form(body: str) -> Dict[str, List[str]]:
    return parse_qs(body, keep_blank_values=True)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def parse_json(body: str) -> Optional[Any]:
    """Parsed JSON, or None for anything that is not strict JSON."""
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except ValueError:
        # JSONDecodeError is a ValueError subclass; so is _reject_constant's
        return None
    except RecursionError:
        return None


def request_url(request: HTTPRequest, default_host: str = "localhost") -> str:
    """
    Reconstruct the full URL the client asked for.

    Absolute-form targets ("http://host/post") are already complete.
    Otherwise the Host header supplies the authority. Without one, the
    address the request actually arrived on is used, then default_host.
    """
    target = request.target
    if "://" in target and not target.startswith("/"):
        return target
    host = request.host or _authority(request.server_address) or default_host
    return f"http://{host}{target}"


def _authority(address: Optional[Tuple[str, int]]) -> Optional[str]:
    if not address:
        return None
    host, port = address[0], address[1]
    if host in WILDCARD_HOSTS:
        host = "localhost"
    elif ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"


class MirrorHandler:
    """
    Builds the mirror payload for a buffered request.

        mirror = MirrorHandler(default_host="localhost:3000")
        router.register("POST", "/post", mirror.handle)

    default_host is the last resort for a request with no Host header
    and no server_address, which only happens outside the server loop.
    """

    def __init__(self, default_host: str = "localhost"):
        self.default_host = default_host

    def describe(self, request: HTTPRequest) -> Dict[str, Any]:
        """The mirror payload as a dict, in output key order."""
        data = request.text
        content_type = request.content_type

        form: Dict[str, List[str]] = {}
        parsed_json: Optional[Any] = None

        # other content types leave both form and json empty
        if JSON_CONTENT_TYPE in content_type:
            parsed_json = parse_json(data)
            if parsed_json is None and data:
                logger.debug("Body declared as JSON did not parse, echoing json=null")
        elif FORM_CONTENT_TYPE in content_type:
            form = parse_form(data)

        return {
            "args": mirror_args(request.query_string),
            "headers": mirror_headers(request),
            "method": request.method,
            "origin": request.client_ip or "unknown",
            "url": request_url(request, self.default_host),
            "data": data,
            "files": {},
            "form": form,
            "json": parsed_json,
        }

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json(self.describe(request), pretty=True)
            .build())

    __call__ = handle
