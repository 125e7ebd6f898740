"""
Contract model - the resolved operation a response is validated against.

All models are frozen after construction so a ContractOperation can be
shared by reference across concurrent validation calls.

Key features:
- ResponseTable lookup chain: exact status -> range (2XX) -> default.
  The range step goes beyond the plain OpenAPI lookup of exact -> default:
  a contract declaring both 2XX and default resolves a 201 to 2XX, where
  an exact-then-default lookup would pick default.
- Header keys normalized to lowercase, Content-Type dropped at the boundary
- ResponseRef.value is None when a $ref could not be loaded
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ContractModelError


HEADER_CONTENT_TYPE = "content-type"


class ContractModel(BaseModel):
    """Base model for all contract objects."""
    model_config = ConfigDict(
        frozen=True,  # Shared read-only across validation calls
        populate_by_name=True,  # Accept both alias and field name
        extra='ignore',  # Ignore vendor extensions and examples
    )


# =============================================================================
# SCHEMAS & MEDIA TYPES
# =============================================================================

class SchemaRef(ContractModel):
    """A value shape, either inline or declared by reference."""
    ref: str = Field(default="", alias="$ref")
    value: Optional[Dict[str, Any]] = None

    @property
    def title(self) -> str:
        if not self.value:
            return ""
        return str(self.value.get("title") or "")

    @property
    def identifier(self) -> str:
        """
        Best-effort identity for messages.

        A schema has no identity field of its own: use the trimmed $ref,
        then the trimmed title, else "".
        """
        ident = self.ref.strip()
        if not ident:
            ident = self.title.strip()
        return ident


class Encoding(ContractModel):
    """Per-field encoding rules for form and multipart bodies."""
    content_type: str = Field(default="", alias="contentType")
    style: str = ""
    explode: Optional[bool] = None
    allow_reserved: bool = Field(default=False, alias="allowReserved")

    @property
    def exploded(self) -> bool:
        # explode defaults to true only for the form style
        if self.explode is not None:
            return self.explode
        return self.style in ("", "form")


class MediaType(ContractModel):
    """One entry of a response's content table."""
    schema_ref: Optional[SchemaRef] = Field(default=None, alias="schema")
    encoding: Dict[str, Encoding] = Field(default_factory=dict)

    def with_schema(self, schema: Optional[Dict[str, Any]]) -> "MediaType":
        if schema is None:
            return self.model_copy(update={"schema_ref": None})
        return self.model_copy(update={"schema_ref": SchemaRef(value=schema)})

    def with_schema_ref(self, schema_ref: Optional[SchemaRef]) -> "MediaType":
        return self.model_copy(update={"schema_ref": schema_ref})

    def with_encoding(self, name: str, encoding: Encoding) -> "MediaType":
        merged = dict(self.encoding)
        merged[name] = encoding
        return self.model_copy(update={"encoding": merged})

    def encoding_for(self, name: str) -> Optional[Encoding]:
        return self.encoding.get(name)


class HeaderDefinition(ContractModel):
    """A declared response header."""
    name: str
    required: bool = False
    schema_ref: Optional[SchemaRef] = Field(default=None, alias="schema")


# =============================================================================
# RESPONSES
# =============================================================================

class ResponseDefinition(ContractModel):
    """Documented shape of one status code's response."""
    description: str = ""
    headers: Dict[str, HeaderDefinition] = Field(default_factory=dict)
    content: Dict[str, MediaType] = Field(default_factory=dict)

    @field_validator('headers', mode='before')
    @classmethod
    def normalize_header_names(cls, v):
        """Lowercase header keys and drop Content-Type (handled by negotiation)."""
        if not v:
            return {}
        normalized = {}
        for name, header in v.items():
            key = name.lower()
            if key == HEADER_CONTENT_TYPE:
                continue
            if key in normalized:
                raise ContractModelError(f"Header '{name}' declared more than once")
            if isinstance(header, HeaderDefinition):
                normalized[key] = header
            else:
                header = dict(header)
                header.setdefault("name", name)
                normalized[key] = header
        return normalized

    @field_validator('content', mode='before')
    @classmethod
    def distinct_media_types(cls, v):
        if not v:
            return {}
        seen = set()
        for pattern in v:
            key = pattern.strip().lower()
            if key in seen:
                raise ContractModelError(f"Media type '{pattern}' declared more than once")
            seen.add(key)
        return v

    def sorted_headers(self) -> List[HeaderDefinition]:
        """Declared headers in lexicographic order of canonical name."""
        return [self.headers[key] for key in sorted(self.headers)]


class ResponseRef(ContractModel):
    """A response table entry; value is None when the reference is dangling."""
    ref: str = Field(default="", alias="$ref")
    value: Optional[ResponseDefinition] = None


class StatusKeyKind(Enum):
    EXACT = "exact"
    RANGE = "range"
    DEFAULT = "default"


class StatusKey(NamedTuple):
    """Key of a response table: Exact(code), Range(class digit) or Default."""
    kind: StatusKeyKind
    value: int = 0

    @classmethod
    def exact(cls, code: int) -> "StatusKey":
        return cls(StatusKeyKind.EXACT, code)

    @classmethod
    def range(cls, code: int) -> "StatusKey":
        return cls(StatusKeyKind.RANGE, code // 100)

    @classmethod
    def default(cls) -> "StatusKey":
        return cls(StatusKeyKind.DEFAULT)

    @classmethod
    def parse(cls, raw: Any) -> "StatusKey":
        """Parse a responses key: 200, "200", "2XX" or "default"."""
        if isinstance(raw, StatusKey):
            return raw
        text = str(raw).strip()
        if text.lower() == "default":
            return cls.default()
        if text.isdigit() and len(text) == 3:
            return cls.exact(int(text))
        if len(text) == 3 and text[0] in "12345" and text[1:].upper() == "XX":
            return cls(StatusKeyKind.RANGE, int(text[0]))
        raise ContractModelError(f"Invalid response status key: {raw!r}")

    @property
    def key(self) -> str:
        if self.kind is StatusKeyKind.EXACT:
            return str(self.value)
        if self.kind is StatusKeyKind.RANGE:
            return f"{self.value}XX"
        return "default"


def lookup_chain(status: int) -> List[StatusKey]:
    """Keys tried, in order, when resolving a status code."""
    return [StatusKey.exact(status), StatusKey.range(status), StatusKey.default()]


class ResponseTable(ContractModel):
    """Mapping from status key to declared response."""
    entries: Dict[str, ResponseRef] = Field(default_factory=dict)

    @field_validator('entries', mode='before')
    @classmethod
    def normalize_status_keys(cls, v):
        if not v:
            return {}
        normalized = {}
        for raw_key, entry in v.items():
            key = StatusKey.parse(raw_key).key
            if key in normalized:
                raise ContractModelError(f"Response status '{raw_key}' declared more than once")
            normalized[key] = entry
        return normalized

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def get(self, key: StatusKey) -> Optional[ResponseRef]:
        return self.entries.get(key.key)

    def default(self) -> Optional[ResponseRef]:
        return self.get(StatusKey.default())

    def lookup(self, status: int) -> Optional[ResponseRef]:
        """Resolve a status code: exact, then range, then default."""
        for key in lookup_chain(status):
            entry = self.get(key)
            if entry is not None:
                return entry
        return None


class ContractOperation(ContractModel):
    """
    The resolved operation a response is validated against.

    document is the enclosing OpenAPI document; the schema engine resolves
    local $refs inside schemas against it.
    """
    operation_id: str = Field(default="", alias="operationId")
    responses: ResponseTable = Field(default_factory=ResponseTable)
    document: Optional[Dict[str, Any]] = Field(default=None, repr=False)


# =============================================================================
# BUILDER
# =============================================================================

def resolve_pointer(document: Optional[Mapping[str, Any]], ref: str) -> Any:
    """
    Resolve a local JSON reference ("#/components/...") against a document.

    Raises:
        ContractModelError: If the reference is not local or does not resolve
    """
    if not ref.startswith("#"):
        raise ContractModelError(f"Only local references are supported: {ref!r}")
    if document is None:
        raise ContractModelError(f"No document to resolve {ref!r} against")
    target: Any = document
    pointer = ref[1:]
    if not pointer:
        return target
    for token in pointer.lstrip("/").split("/"):
        token = token.replace("~1", "/").replace("~0", "~")
        if isinstance(target, Mapping) and token in target:
            target = target[token]
        elif isinstance(target, list) and token.isdigit() and int(token) < len(target):
            target = target[int(token)]
        else:
            raise ContractModelError(f"Reference {ref!r} does not resolve")
    return target


def _follow(raw: Mapping[str, Any], document: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    seen = set()
    while "$ref" in raw:
        ref = raw["$ref"]
        if ref in seen:
            raise ContractModelError(f"Reference cycle at {ref!r}")
        seen.add(ref)
        raw = resolve_pointer(document, ref)
        if not isinstance(raw, Mapping):
            raise ContractModelError(f"Reference {ref!r} does not point to an object")
    return raw


def _build_schema(raw: Optional[Mapping[str, Any]], document) -> Optional[SchemaRef]:
    if raw is None:
        return None
    if "$ref" in raw:
        return SchemaRef(ref=raw["$ref"], value=dict(_follow(raw, document)))
    return SchemaRef(value=dict(raw))


def _build_response(raw: Mapping[str, Any], document) -> ResponseDefinition:
    headers = {}
    for name, header in (raw.get("headers") or {}).items():
        header = _follow(header, document)
        headers[name] = HeaderDefinition(
            name=name,
            required=bool(header.get("required", False)),
            schema_ref=_build_schema(header.get("schema"), document),
        )
    content = {}
    for pattern, media in (raw.get("content") or {}).items():
        content[pattern] = MediaType(
            schema_ref=_build_schema(media.get("schema"), document),
            encoding={
                name: Encoding.model_validate(enc)
                for name, enc in (media.get("encoding") or {}).items()
            },
        )
    return ResponseDefinition(
        description=raw.get("description", ""),
        headers=headers,
        content=content,
    )


def build_operation(
    operation: Mapping[str, Any],
    document: Optional[Mapping[str, Any]] = None,
) -> ContractOperation:
    """
    Build a ContractOperation from an already-parsed OpenAPI operation object.

    Response references that cannot be resolved are kept as
    ResponseRef(value=None) so validation can report them; broken header or
    schema references raise immediately.

    Args:
        operation: The operation mapping (the value under paths.<path>.<method>)
        document: The enclosing document, for local $refs

    Raises:
        ContractModelError: If the operation is malformed
    """
    entries = {}
    for status, raw in (operation.get("responses") or {}).items():
        ref = raw.get("$ref", "")
        if ref:
            try:
                target = _follow(raw, document)
            except ContractModelError:
                entries[status] = ResponseRef(ref=ref, value=None)
                continue
        else:
            target = raw
        entries[status] = ResponseRef(ref=ref, value=_build_response(target, document))

    return ContractOperation(
        operation_id=operation.get("operationId", ""),
        responses=ResponseTable(entries=entries),
        document=dict(document) if document is not None else None,
    )
