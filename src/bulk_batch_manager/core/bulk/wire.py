# -*- coding: utf-8 -*-
"""
XML documents exchanged with the bulk service: job descriptors sent on
create/close, and the jobInfo / batchInfo / result-list / error documents it
answers with.
"""

import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

from .exceptions import RemoteServiceError

ASYNC_API_NAMESPACE = 'http://www.force.com/2009/06/asyncapi/dataload'
XML_CONTENT_TYPE = 'application/xml; charset=utf-8'
CSV_CONTENT_TYPE = 'text/csv; charset=UTF-8'


def _local_name(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def _to_bytes(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding='utf-8', xml_declaration=True)


def build_job_info(
        operation: str,
        sobject: str,
        external_field: Optional[str] = None,
        concurrency_mode: str = 'Parallel'
    ) -> bytes:
    """Job creation descriptor. externalIdFieldName is only written for upserts."""
    root = ET.Element('jobInfo', xmlns=ASYNC_API_NAMESPACE)
    ET.SubElement(root, 'operation').text = operation
    ET.SubElement(root, 'object').text = sobject
    if external_field and operation == 'upsert':
        ET.SubElement(root, 'externalIdFieldName').text = external_field
    ET.SubElement(root, 'concurrencyMode').text = concurrency_mode
    ET.SubElement(root, 'contentType').text = 'CSV'
    return _to_bytes(root)


def build_close_job_info() -> bytes:
    root = ET.Element('jobInfo', xmlns=ASYNC_API_NAMESPACE)
    ET.SubElement(root, 'state').text = 'Closed'
    return _to_bytes(root)


def _parse_root(payload) -> Optional[ET.Element]:
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    if not payload or not payload.strip():
        return None
    try:
        return ET.fromstring(payload)
    except ET.ParseError as e:
        raise RemoteServiceError(
            f"Unreadable service response: {payload[:200]!r}", code='MalformedResponse'
        ) from e


def _flatten(element: ET.Element) -> dict:
    info = {}
    for child in element:
        info[_local_name(child.tag)] = (child.text or '').strip()
    return info


def parse_info(payload) -> dict:
    """Flatten a jobInfo, batchInfo or error document into {tag: text}."""
    root = _parse_root(payload)
    if root is None:
        return {}
    return _flatten(root)


def parse_info_list(payload, item_tag: str = 'batchInfo') -> List[dict]:
    """Flatten every item_tag child of a list document, e.g. batchInfoList."""
    root = _parse_root(payload)
    if root is None:
        return []
    return [_flatten(child) for child in root if _local_name(child.tag) == item_tag]


def parse_result_list(payload) -> List[str]:
    """Result-set ids of a query batch, in service order."""
    root = _parse_root(payload)
    if root is None:
        return []
    return [
        (child.text or '').strip()
        for child in root
        if _local_name(child.tag) == 'result' and (child.text or '').strip()
    ]


def service_exception(info: dict) -> Optional[Tuple[str, str]]:
    """(message, code) when info is a service exception document, else None."""
    code = info.get('exceptionCode')
    if not code:
        return None
    return info.get('exceptionMessage', ''), code


def raise_for_service_exception(info: dict) -> dict:
    exception = service_exception(info)
    if exception is not None:
        message, code = exception
        raise RemoteServiceError(message, code)
    return info
