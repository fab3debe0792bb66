"""
=============================================================================
TEST HELPERS
=============================================================================

Small building blocks for suites that drive a mirror server from the
outside, the way a browser would:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   resolve_url("env:HTTPBIN_FORM_URL")                               │
    │            │                                                        │
    │            ▼                                                        │
    │   FormPage.open(url) ──► fill / check / select_radio                │
    │            │                                                        │
    │            ▼                                                        │
    │   submit("Submit order") ──► POST form-urlencoded to the action     │
    │            │                                                        │
    │            ▼                                                        │
    │   FetchResult (status, headers, body) ──► assert "John Doe" in it   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ORDERED FALLBACK LOCATORS
=============================================================================

Real forms are not consistent about how a field can be found. A field
called "comments" might be:

    <input name="comments">
    <textarea name="comments">
    <input id="comments">
    <div data-testid="comments">

FormPage tries each strategy in order and stops at the first hit. A
strategy that finds nothing returns None; only when every strategy has
come up empty does the lookup raise LookupError. There is no exception
flow between strategies.

=============================================================================
"""

import os
import json
import random
import http.client
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar
from urllib.parse import urlencode, urljoin, urlsplit


T = TypeVar("T")
R = TypeVar("R")

ENV_PREFIX = "env:"

FORM_URLENCODED = "application/x-www-form-urlencoded"


class MissingEnvironmentError(RuntimeError):
    """A URL referenced an environment variable that is not set."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Environment variable '{name}' is not set")


def resolve_url(url: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Expand "env:NAME" to the value of NAME; other URLs pass through.

    Raises:
        MissingEnvironmentError: NAME is unset or empty.
    """
    if not url.startswith(ENV_PREFIX):
        return url

    environ = os.environ if environ is None else environ
    name = url[len(ENV_PREFIX):]
    value = environ.get(name)
    if not value:
        raise MissingEnvironmentError(name)
    return value


def first_match(
    candidates: Iterable[T],
    probe: Callable[[T], Optional[R]],
    what: str = "a match",
) -> R:
    """
    Return probe(candidate) for the first candidate where it is not None.

    Raises:
        LookupError: No candidate matched.
    """
    for candidate in candidates:
        result = probe(candidate)
        if result is not None:
            return result
    raise LookupError(f"Could not find {what}")


def random_delivery_time(rng: Optional[random.Random] = None) -> str:
    """A "HH:MM" slot on the 10-minute grid between 11:00 and 21:50."""
    rng = rng or random.Random()
    hour = rng.randint(11, 21)
    minute = rng.randrange(0, 60, 10)
    return f"{hour:02d}:{minute:02d}"


# =============================================================================
# HTTP CLIENT
# =============================================================================

@dataclass
class FetchResult:
    """A completed HTTP exchange."""

    status: int
    headers: List[Tuple[str, str]]
    body: bytes
    url: str = ""

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return default

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)

    def contains(self, text: str) -> bool:
        return text in self.text


def fetch(
    method: str,
    url: str,
    body: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
) -> FetchResult:
    """One request on a fresh connection."""
    parts = urlsplit(url)
    if parts.scheme == "https":
        connection_class = http.client.HTTPSConnection
    elif parts.scheme == "http":
        connection_class = http.client.HTTPConnection
    else:
        raise ValueError(f"Unsupported URL scheme: {parts.scheme!r}")

    target = parts.path or "/"
    if parts.query:
        target = f"{target}?{parts.query}"

    conn = connection_class(parts.hostname, parts.port, timeout=timeout)
    try:
        conn.request(method, target, body=body, headers=headers or {})
        response = conn.getresponse()
        return FetchResult(
            status=response.status,
            headers=response.getheaders(),
            body=response.read(),
            url=url,
        )
    finally:
        conn.close()


class MirrorClient:
    """
    Client for a running mirror server.

        client = MirrorClient("http://127.0.0.1:3000")
        echoed = client.post("/post?a=1", json={"name": "Jane"}).json()
        assert echoed["json"] == {"name": "Jane"}
    """

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url(self, path: str) -> str:
        return urljoin(self.base_url + "/", path.lstrip("/"))

    def get(self, path: str, headers: Optional[Dict[str, str]] = None) -> FetchResult:
        return fetch("GET", self.url(path), headers=headers, timeout=self.timeout)

    def post(
        self,
        path: str,
        data: Any = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> FetchResult:
        """
        POST a body. `data` may be bytes, str, or form pairs/dict;
        `json` is serialized with Content-Type application/json.
        """
        headers = dict(headers or {})
        body: Optional[bytes] = None

        if json is not None:
            body = _json_dumps(json)
            headers.setdefault("Content-Type", "application/json")
        elif isinstance(data, bytes):
            body = data
        elif isinstance(data, str):
            body = data.encode("utf-8")
        elif data is not None:
            body = urlencode(data, doseq=True).encode("ascii")
            headers.setdefault("Content-Type", FORM_URLENCODED)

        return fetch("POST", self.url(path), body=body, headers=headers, timeout=self.timeout)

    def health(self) -> Dict[str, Any]:
        return self.get("/health").json()


def _json_dumps(value: Any) -> bytes:
    return json.dumps(value).encode("utf-8")


# =============================================================================
# FORM PAGE
# =============================================================================

VOID_TAGS = {"input", "br", "hr", "img", "meta", "link", "area", "base", "col", "source", "wbr"}
SUBMIT_TYPES = {"submit", "image"}
BUTTON_INPUT_TYPES = {"submit", "button", "reset", "image"}
TOGGLE_TYPES = {"checkbox", "radio"}


@dataclass(eq=False)
class Element:
    """An element of interest on the page, with its live form state."""

    tag: str
    attrs: Dict[str, str]
    text: str = ""
    in_form: bool = False
    value: str = ""
    checked: bool = False
    options: List["Element"] = field(default_factory=list)
    selected: bool = False

    @property
    def name(self) -> str:
        return self.attrs.get("name", "")

    @property
    def type(self) -> str:
        if self.tag == "input":
            return self.attrs.get("type", "text").lower()
        if self.tag == "button":
            return self.attrs.get("type", "submit").lower()
        return ""

    @property
    def visible(self) -> bool:
        return "hidden" not in self.attrs and self.type != "hidden"

    @property
    def disabled(self) -> bool:
        return "disabled" in self.attrs

    @property
    def label(self) -> str:
        return " ".join(self.text.split())

    def __repr__(self) -> str:
        return f"<{self.tag} {self.attrs}>"


class _FormParser(HTMLParser):
    """Collects form controls and clickable elements in document order."""

    CAPTURE_TAGS = {"button", "textarea", "option", "a"}

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.elements: List[Element] = []
        self.form_attrs: Optional[Dict[str, str]] = None
        self._in_form = False
        self._open: List[Element] = []
        self._select: Optional[Element] = None

    def handle_starttag(self, tag, attrs):
        attrs = {key: value or "" for key, value in attrs}

        if tag == "form":
            if self.form_attrs is None:
                self.form_attrs = attrs
                self._in_form = True
            return

        interesting = (
            tag in ("input", "textarea", "select", "button", "option")
            or "id" in attrs
            or "data-testid" in attrs
            or attrs.get("role") == "button"
        )
        if not interesting:
            return

        element = Element(tag=tag, attrs=attrs, in_form=self._in_form)
        if tag == "input":
            element.value = attrs.get("value", "on" if element.type in TOGGLE_TYPES else "")
            element.checked = "checked" in attrs

        if tag == "option" and self._select is not None:
            element.selected = "selected" in attrs
            self._select.options.append(element)
        else:
            self.elements.append(element)

        if tag == "select":
            self._select = element

        if tag not in VOID_TAGS and (tag in self.CAPTURE_TAGS or attrs.get("role") == "button"):
            self._open.append(element)

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag not in VOID_TAGS:
            self.handle_endtag(tag)

    def handle_endtag(self, tag):
        if tag == "form" and self._in_form:
            self._in_form = False
            return

        if tag == "select" and self._select is not None:
            self._finish_select(self._select)
            self._select = None

        for index in range(len(self._open) - 1, -1, -1):
            if self._open[index].tag == tag:
                element = self._open.pop(index)
                if tag == "textarea":
                    element.value = element.text.lstrip("\n")
                elif tag == "option" and "value" not in element.attrs:
                    element.attrs["value"] = element.label
                break

    def handle_data(self, data):
        for element in self._open:
            element.text += data

    @staticmethod
    def _finish_select(select: Element):
        chosen = [option for option in select.options if option.selected]
        if not chosen and select.options:
            select.options[0].selected = True


class FormPage:
    """
    A parsed HTML form that can be filled in and submitted.

        page = FormPage.open("http://127.0.0.1:3000/forms/post")
        page.fill("custname", "John Doe")
        page.check("cheese", "topping")
        page.select_radio("medium", "size")
        result = page.submit("Submit order")
        assert result.contains("John Doe")
    """

    def __init__(self, html: str, url: str = ""):
        self.url = url

        parser = _FormParser()
        parser.feed(html)
        parser.close()

        self.elements = parser.elements
        self.form_attrs = parser.form_attrs or {}

    @classmethod
    def open(cls, url: str, timeout: float = 10.0) -> "FormPage":
        """
        Fetch and parse a page. `url` may be "env:NAME".

        Raises:
            MissingEnvironmentError: For an unset env:NAME.
            LookupError: The page did not load with status 200.
        """
        url = resolve_url(url)
        result = fetch("GET", url, timeout=timeout)
        if result.status != 200:
            raise LookupError(f"GET {url} returned {result.status}")
        return cls(result.text, url)

    # ─────────────────────────────────────────────────────────────────────
    # LOCATORS
    # ─────────────────────────────────────────────────────────────────────

    def _one(self, predicate: Callable[[Element], bool]) -> Optional[Element]:
        for element in self.elements:
            if element.visible and predicate(element):
                return element
        return None

    def find_field(self, name: str) -> Element:
        """input[name], textarea[name], #id, then [data-testid]."""
        def fillable(element: Element) -> bool:
            if element.tag == "textarea":
                return True
            return (
                element.tag == "input"
                and element.type not in TOGGLE_TYPES
                and element.type not in BUTTON_INPUT_TYPES
            )

        strategies = [
            lambda: self._one(lambda e: e.tag == "input" and e.name == name and fillable(e)),
            lambda: self._one(lambda e: e.tag == "textarea" and e.name == name),
            lambda: self._one(lambda e: e.attrs.get("id") == name and fillable(e)),
            lambda: self._one(lambda e: e.attrs.get("data-testid") == name and fillable(e)),
        ]
        return first_match(strategies, lambda strategy: strategy(), f"field with name '{name}'")

    def find_button(self, text: str) -> Element:
        """
        <button> by text, input[type=submit|button] by value,
        [role=button] by text, then any input by value.
        """
        strategies = [
            lambda: self._one(lambda e: e.tag == "button" and e.label == text),
            lambda: self._one(lambda e: e.tag == "input" and e.type == "submit" and e.attrs.get("value") == text),
            lambda: self._one(lambda e: e.tag == "input" and e.type == "button" and e.attrs.get("value") == text),
            lambda: self._one(lambda e: e.attrs.get("role") == "button" and e.label == text),
            lambda: self._one(lambda e: e.tag == "input" and e.attrs.get("value") == text),
        ]
        return first_match(strategies, lambda strategy: strategy(), f"button with text '{text}'")

    def _toggle(self, kind: str, option: str, name: str) -> Element:
        value = option.lower()
        element = self._one(
            lambda e: e.tag == "input" and e.type == kind and e.name == name and e.attrs.get("value") == value
        )
        if element is None:
            raise LookupError(f"Could not find {kind} '{option}' for '{name}'")
        return element

    # ─────────────────────────────────────────────────────────────────────
    # ACTIONS
    # ─────────────────────────────────────────────────────────────────────

    def fill(self, name: str, text: Any) -> "FormPage":
        self.find_field(name).value = str(text)
        return self

    def check(self, option: str, name: str) -> "FormPage":
        """Tick the checkbox `name` whose value is `option`."""
        self._toggle("checkbox", option, name).checked = True
        return self

    def uncheck(self, option: str, name: str) -> "FormPage":
        self._toggle("checkbox", option, name).checked = False
        return self

    def select_radio(self, option: str, name: str) -> "FormPage":
        """Pick one radio in group `name`, clearing the rest."""
        chosen = self._toggle("radio", option, name)
        for element in self.elements:
            if element.tag == "input" and element.type == "radio" and element.name == name:
                element.checked = element is chosen
        return self

    def select(self, name: str, option: str) -> "FormPage":
        """Choose an <option> of <select name=...> by value or text."""
        select = self._one(lambda e: e.tag == "select" and e.name == name)
        if select is None:
            raise LookupError(f"Could not find select '{name}'")

        match = None
        for candidate in select.options:
            if candidate.attrs.get("value") == option or candidate.label == option:
                match = candidate
                break
        if match is None:
            raise LookupError(f"Select '{name}' has no option '{option}'")

        for candidate in select.options:
            candidate.selected = candidate is match
        return self

    # ─────────────────────────────────────────────────────────────────────
    # SUBMISSION
    # ─────────────────────────────────────────────────────────────────────

    def form_data(self, submitter: Optional[Element] = None) -> List[Tuple[str, str]]:
        """Successful controls in document order, as a browser would send them."""
        pairs: List[Tuple[str, str]] = []

        for element in self.elements:
            if not element.in_form or not element.name or element.disabled:
                continue

            if element.tag == "button" or element.type in BUTTON_INPUT_TYPES:
                if element is submitter:
                    pairs.append((element.name, element.attrs.get("value", "")))
            elif element.tag == "input" and element.type in TOGGLE_TYPES:
                if element.checked:
                    pairs.append((element.name, element.value))
            elif element.tag in ("input", "textarea"):
                pairs.append((element.name, element.value))
            elif element.tag == "select":
                for option in element.options:
                    if option.selected:
                        pairs.append((element.name, option.attrs.get("value", "")))

        return pairs

    @property
    def action_url(self) -> str:
        return urljoin(self.url, self.form_attrs.get("action", ""))

    def submit(self, button_text: Optional[str] = None, timeout: float = 10.0) -> FetchResult:
        """
        Click a button (or just submit) and return the server's answer.

        Raises:
            LookupError: No button with that text.
        """
        submitter = self.find_button(button_text) if button_text is not None else None
        if submitter is not None and submitter.type not in SUBMIT_TYPES:
            raise LookupError(f"Button '{button_text}' does not submit the form")

        encoded = urlencode(self.form_data(submitter))
        method = self.form_attrs.get("method", "get").upper()

        if method == "POST":
            return fetch(
                "POST",
                self.action_url,
                body=encoded.encode("ascii"),
                headers={"Content-Type": FORM_URLENCODED},
                timeout=timeout,
            )

        base = self.action_url.split("?", 1)[0]
        return fetch("GET", f"{base}?{encoded}", timeout=timeout)
