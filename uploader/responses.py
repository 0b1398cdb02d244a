"""Interprets S3 XML response bodies: success payloads become dicts, Error documents become typed exceptions."""

import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

from common.constants import ERROR_CODE_DEFAULT, ERROR_MESSAGE_DEFAULT, SIGNATURE_MISMATCH_CODE
from common.exceptions import AwsProtocolError, MalformedResponseError, SignatureMismatchError


def _local_name(tag: str) -> str:
    """Strip an XML namespace: '{http://...}UploadId' -> 'UploadId'."""
    return tag.rsplit('}', 1)[-1]


def _element_to_value(element: ET.Element) -> Any:
    """
    Convert an element into text (leaf) or a dict of children.

    Repeated child names collect into a list in document order.
    """
    children = list(element)
    if not children:
        return (element.text or '').strip()

    result: Dict[str, Any] = {}
    for child in children:
        name = _local_name(child.tag)
        value = _element_to_value(child)
        if name in result:
            if not isinstance(result[name], list):
                result[name] = [result[name]]
            result[name].append(value)
        else:
            result[name] = value
    return result


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or '').strip() or None
    return None


def _raise_error_document(root: ET.Element, status_code: Optional[int]) -> None:
    code = _child_text(root, 'Code') or ERROR_CODE_DEFAULT
    message = _child_text(root, 'Message') or ERROR_MESSAGE_DEFAULT
    common_fields = dict(
        request_id=_child_text(root, 'RequestId'),
        host_id=_child_text(root, 'HostId'),
        resource=_child_text(root, 'Resource'),
        status_code=status_code,
    )

    if code == SIGNATURE_MISMATCH_CODE:
        raise SignatureMismatchError(
            code,
            message,
            access_key_id=_child_text(root, 'AWSAccessKeyId'),
            string_to_sign=_child_text(root, 'StringToSign'),
            canonical_request=_child_text(root, 'CanonicalRequest'),
            **common_fields,
        )
    raise AwsProtocolError(code, message, **common_fields)


def parse_aws_response(body: bytes, status_code: Optional[int] = None) -> Dict[str, Any]:
    """
    Parse a raw S3 response body.

    Args:
        body: Raw response bytes
        status_code: HTTP status, recorded on any raised error

    Returns:
        {root element name: nested structure}; empty dict for an empty body

    Raises:
        SignatureMismatchError: Error document with code SignatureDoesNotMatch
        AwsProtocolError: Any other Error document
        MalformedResponseError: Body is not well-formed XML
    """
    if not body or not body.strip():
        return {}

    # S3 may send whitespace ahead of the XML declaration while a long request runs.
    body = body.lstrip()

    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise MalformedResponseError(
            f"Unparseable response body: {e}", status_code=status_code
        ) from e

    root_name = _local_name(root.tag)
    if root_name == 'Error':
        _raise_error_document(root, status_code)

    return {root_name: _element_to_value(root)}
