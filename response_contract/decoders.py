"""
Body decoders - raw response bytes to a structured value.

Decoders are registered per bare media type. The built-ins cover JSON (and
any +json suffix), plain text, octet streams, urlencoded forms and
multipart/form-data. Form decoders are schema-guided: repeated keys become
arrays only where the schema says array, and primitive fields are coerced to
the declared type.

Usage:
    register_body_decoder("application/yaml", yaml_decoder)
    value = decode_body(data, headers, schema_ref, media_type.encoding_for)
"""

import io
import json
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qs

from werkzeug.datastructures import FileStorage, Headers
from werkzeug.exceptions import HTTPException
from werkzeug.formparser import parse_form_data

from .coerce import coerce_primitive, schema_type
from .errors import ContractModelError, DecodeError
from .media_types import is_json_media_type, split_content_type
from .model import Encoding, SchemaRef, resolve_pointer

EncodingFn = Callable[[str], Optional[Encoding]]
BodyDecoder = Callable[[bytes, Headers, Optional[SchemaRef], EncodingFn], Any]

_DELIMITERS = {
    "spaceDelimited": " ",
    "pipeDelimited": "|",
}


def _charset(headers: Headers, default: str = "utf-8") -> str:
    _, params = split_content_type(headers.get("Content-Type"))
    return params.get("charset") or default


def _to_text(data: bytes, charset: str, content_type: str) -> str:
    try:
        return data.decode(charset)
    except (UnicodeDecodeError, LookupError) as err:
        raise DecodeError(f"Body is not valid {charset} text: {err}", content_type=content_type) from err


def _no_encoding(name: str) -> Optional[Encoding]:
    return None


# =============================================================================
# BUILT-IN DECODERS
# =============================================================================

def json_body_decoder(data, headers, schema_ref, encoding_fn):
    """Decode a JSON document."""
    try:
        _, params = split_content_type(headers.get("Content-Type"))
        charset = params.get("charset")
        return json.loads(data.decode(charset) if charset else data)
    except (ValueError, UnicodeDecodeError, LookupError) as err:
        raise DecodeError(f"Invalid JSON body: {err}", content_type="application/json") from err


def plain_body_decoder(data, headers, schema_ref, encoding_fn):
    """Decode text/plain as a string."""
    return _to_text(data, _charset(headers), "text/plain")


def octet_stream_body_decoder(data, headers, schema_ref, encoding_fn):
    """Binary bodies are matched as strings (format: binary)."""
    return data.decode("latin-1")


def urlencoded_body_decoder(data, headers, schema_ref, encoding_fn):
    """Decode application/x-www-form-urlencoded into an object."""
    text = _to_text(data, _charset(headers), "application/x-www-form-urlencoded")
    fields = parse_qs(text, keep_blank_values=True)
    return _shape_fields(fields, schema_ref, encoding_fn)


def multipart_body_decoder(data, headers, schema_ref, encoding_fn):
    """Decode multipart/form-data into an object, one entry per part name."""
    environ = {
        "REQUEST_METHOD": "POST",
        "CONTENT_TYPE": headers.get("Content-Type", ""),
        "CONTENT_LENGTH": str(len(data)),
        "wsgi.input": io.BytesIO(data),
    }
    try:
        _, form, files = parse_form_data(environ, silent=False)
    except (ValueError, HTTPException) as err:
        raise DecodeError(f"Invalid multipart body: {err}", content_type="multipart/form-data") from err

    fields: Dict[str, List[Any]] = {}
    for name, value in form.items(multi=True):
        fields.setdefault(name, []).append(value)
    for name, upload in files.items(multi=True):
        fields.setdefault(name, []).append(_read_part(name, upload))
    return _shape_fields(fields, schema_ref, encoding_fn)


def _read_part(name: str, upload: FileStorage) -> Any:
    raw = upload.read()
    if is_json_media_type(upload.mimetype or ""):
        try:
            return json.loads(raw)
        except ValueError as err:
            raise DecodeError(f"Part '{name}' is not valid JSON: {err}", field=name) from err
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


# =============================================================================
# SCHEMA-GUIDED FORM SHAPING
# =============================================================================

def _shape_fields(
    fields: Dict[str, List[Any]],
    schema_ref: Optional[SchemaRef],
    encoding_fn: EncodingFn,
) -> Dict[str, Any]:
    schema = (schema_ref.value if schema_ref else None) or {}
    properties = schema.get("properties") or {}
    result: Dict[str, Any] = {}

    # deepObject fields arrive as name[key]=value
    for name, prop in properties.items():
        encoding = encoding_fn(name)
        if schema_type(prop) == "object" and encoding is not None and encoding.style == "deepObject":
            prefix = f"{name}["
            nested = {
                key[len(prefix):-1]: values
                for key, values in fields.items()
                if key.startswith(prefix) and key.endswith("]")
            }
            if nested:
                result[name] = _shape_fields(nested, SchemaRef(value=prop), _no_encoding)
                for key in nested:
                    fields.pop(f"{prefix}{key}]", None)

    for name, values in fields.items():
        if name in result:
            continue
        prop = properties.get(name)
        if prop is None:
            result[name] = values[0] if len(values) == 1 else values
            continue
        result[name] = _field_value(name, values, prop, encoding_fn(name))
    return result


def _field_value(name: str, values: List[Any], prop: Mapping[str, Any], encoding: Optional[Encoding]) -> Any:
    if encoding is not None and is_json_media_type(split_content_type(encoding.content_type)[0]):
        values = [_json_field(name, v) for v in values]

    declared = schema_type(prop)
    if declared == "array":
        items = prop.get("items") or {}
        if len(values) == 1 and isinstance(values[0], str) and encoding is not None and not encoding.exploded:
            delimiter = _DELIMITERS.get(encoding.style, ",")
            values = values[0].split(delimiter) if values[0] else []
        return [coerce_primitive(v, items, field=name) for v in values]
    return coerce_primitive(values[0], prop, field=name)


def _json_field(name: str, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError as err:
        raise DecodeError(f"Field '{name}' is not valid JSON: {err}", field=name) from err


# =============================================================================
# REGISTRY
# =============================================================================

_DECODERS: Dict[str, BodyDecoder] = {
    "application/json": json_body_decoder,
    "application/problem+json": json_body_decoder,
    "text/plain": plain_body_decoder,
    "application/octet-stream": octet_stream_body_decoder,
    "application/x-www-form-urlencoded": urlencoded_body_decoder,
    "multipart/form-data": multipart_body_decoder,
}


def register_body_decoder(content_type: str, decoder: BodyDecoder) -> None:
    """Register (or replace) the decoder for a bare media type."""
    if not content_type:
        raise ValueError("content_type is required")
    if decoder is None:
        raise ValueError("decoder is required")
    _DECODERS[content_type.strip().lower()] = decoder


def unregister_body_decoder(content_type: str) -> None:
    """Remove the decoder for a media type; unknown types are ignored."""
    _DECODERS.pop(content_type.strip().lower(), None)


def registered_body_decoder(content_type: str) -> Optional[BodyDecoder]:
    """The decoder that would handle content_type, or None."""
    mimetype, _ = split_content_type(content_type)
    decoder = _DECODERS.get(mimetype)
    if decoder is None and is_json_media_type(mimetype):
        decoder = json_body_decoder
    return decoder


def _resolve_properties(schema_ref: Optional[SchemaRef], document) -> Optional[SchemaRef]:
    """Inline one level of property $refs so form decoders see the types."""
    if schema_ref is None or not schema_ref.value or document is None:
        return schema_ref
    properties = schema_ref.value.get("properties")
    if not properties:
        return schema_ref
    resolved = {}
    for name, prop in properties.items():
        if isinstance(prop, Mapping) and "$ref" in prop:
            try:
                prop = resolve_pointer(document, prop["$ref"])
            except ContractModelError as err:
                raise DecodeError(f"Cannot resolve schema for field '{name}': {err}", field=name) from err
        resolved[name] = prop
    value = dict(schema_ref.value)
    value["properties"] = resolved
    return SchemaRef(ref=schema_ref.ref, value=value)


def decode_body(
    data: bytes,
    headers: Headers,
    schema_ref: Optional[SchemaRef],
    encoding_fn: Optional[EncodingFn] = None,
    document: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    Decode a response body according to its Content-Type.

    Args:
        data: Raw body bytes
        headers: Observed response headers
        schema_ref: Matched schema (guides form decoding)
        encoding_fn: Field name -> encoding rules
        document: Contract document for property $refs

    Returns:
        The decoded value

    Raises:
        DecodeError: If the content type is unsupported or the body is malformed
    """
    content_type = headers.get("Content-Type", "")
    decoder = registered_body_decoder(content_type)
    if decoder is None:
        raise DecodeError(
            f"Unsupported content type {content_type!r}",
            content_type=content_type,
        )
    try:
        return decoder(data, headers, _resolve_properties(schema_ref, document), encoding_fn or _no_encoding)
    except DecodeError:
        raise
    except Exception as err:
        # Anything a decoder raises is a decode failure
        raise DecodeError(f"Failed to decode {content_type!r} body: {err}", content_type=content_type) from err
