"""Pydantic schemas for S3 multipart payloads and builders for request documents."""

import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from common.constants import DEFAULT_REGION, S3_XML_NAMESPACE
from common.exceptions import MalformedResponseError
from common.types import PartResult


class InitiateMultipartUploadResult(BaseModel):
    """Response model for CreateMultipartUpload."""
    model_config = ConfigDict(populate_by_name=True)

    bucket: Optional[str] = Field(default=None, alias="Bucket")
    key: Optional[str] = Field(default=None, alias="Key")
    upload_id: str = Field(alias="UploadId", min_length=1)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "InitiateMultipartUploadResult":
        body = payload.get("InitiateMultipartUploadResult")
        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Expected InitiateMultipartUploadResult, got {list(payload) or 'an empty body'}"
            )
        try:
            return cls.model_validate(body)
        except ValidationError as e:
            raise MalformedResponseError(f"Initiate response has no usable UploadId: {e}") from e


class CompleteMultipartUploadResult(BaseModel):
    """Response model for CompleteMultipartUpload."""
    model_config = ConfigDict(populate_by_name=True)

    location: Optional[str] = Field(default=None, alias="Location")
    bucket: Optional[str] = Field(default=None, alias="Bucket")
    key: Optional[str] = Field(default=None, alias="Key")
    etag: Optional[str] = Field(default=None, alias="ETag")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CompleteMultipartUploadResult":
        body = payload.get("CompleteMultipartUploadResult")
        if not isinstance(body, dict):
            return cls()
        try:
            return cls.model_validate(body)
        except ValidationError as e:
            raise MalformedResponseError(f"Unexpected complete response: {e}") from e


def build_complete_multipart_body(parts: Sequence[PartResult]) -> bytes:
    """
    Build the CompleteMultipartUpload document, parts ascending by part number.

    Raises:
        ValueError: If the part list is empty or repeats a part number
    """
    if not parts:
        raise ValueError("Cannot complete an upload without parts")

    ordered = sorted(parts, key=lambda p: p.part_number)
    numbers = [p.part_number for p in ordered]
    if len(set(numbers)) != len(numbers):
        raise ValueError(f"Duplicate part numbers in {numbers}")

    root = ET.Element("CompleteMultipartUpload", xmlns=S3_XML_NAMESPACE)
    for part in ordered:
        part_element = ET.SubElement(root, "Part")
        ET.SubElement(part_element, "PartNumber").text = str(part.part_number)
        ET.SubElement(part_element, "ETag").text = part.etag
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def build_create_bucket_body(region: str) -> bytes:
    """
    Build the CreateBucketConfiguration document; us-east-1 takes no body.
    """
    if region == DEFAULT_REGION:
        return b""
    root = ET.Element("CreateBucketConfiguration", xmlns=S3_XML_NAMESPACE)
    ET.SubElement(root, "LocationConstraint").text = region
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
