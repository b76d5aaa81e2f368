# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Builds links and RFC 7807 problem documents.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin

from models.responses import HalLink

PROBLEM_TYPE_BASE = "https://pqrs.example.org/problems/"


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: Optional[str] = None,
        content_type: Optional[str] = None,
        title: Optional[str] = None
    ) -> HalLink:
        href = urljoin(self.base_url, path.lstrip('/'))
        return HalLink(href=href, method=method, type=content_type, title=title)


class HalFormatter:
    """Formats problem documents for error responses."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        errors: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_TYPE_BASE}{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if errors:
            error_response['errors'] = errors

        links = {
            'help': self.link_builder.build_link(f"/docs/errors#{error_type}", title="Error documentation")
        }
        if error_type == "invalid-input":
            links['schema'] = self.link_builder.build_link("/openapi/openapi.json", title="API schema")
        elif error_type == "resource-not-found" and instance.startswith("/api/cases"):
            links['collection'] = self.link_builder.build_link("/api/cases", title="Cases")

        error_response['_links'] = {
            rel: link.model_dump(exclude_none=True) for rel, link in links.items()
        }
        return error_response
