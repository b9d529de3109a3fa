"""Work item relation helpers: attachments and links."""

from __future__ import annotations

import re
from typing import Any

from azdo_mcp.client import AzureDevOpsClient
from azdo_mcp.models import Attachment

ATTACHMENT_RELATIONS: frozenset[str] = frozenset({"AttachedFile", "Hyperlink"})

_WORK_ITEM_URL_RE = re.compile(r"/_apis/wit/workItems/(\d+)$", re.IGNORECASE)


async def _relations(client: AzureDevOpsClient, work_item_id: int) -> list[dict[str, Any]]:
    work_item = await client.get_work_item(work_item_id, expand="relations")
    return list(work_item.get("relations") or [])


async def get_work_item_attachments(client: AzureDevOpsClient, work_item_id: int) -> list[Attachment]:
    attachments = []
    for relation in await _relations(client, work_item_id):
        if relation.get("rel") not in ATTACHMENT_RELATIONS:
            continue
        url = relation.get("url") or ""
        attributes = relation.get("attributes") or {}
        attachments.append(
            Attachment(
                url=url,
                name=attributes.get("name") or url.rstrip("/").rsplit("/", 1)[-1] or "unnamed",
                comment=attributes.get("comment") or "",
                resource_size=int(attributes.get("resourceSize") or 0),
                content_type=attributes.get("resourceType") or "",
            )
        )
    return attachments


async def get_work_item_links(client: AzureDevOpsClient, work_item_id: int) -> list[dict[str, Any]]:
    """Relations that point at other work items, with the target id pulled out."""
    links = []
    for relation in await _relations(client, work_item_id):
        match = _WORK_ITEM_URL_RE.search(relation.get("url") or "")
        if match is None:
            continue
        attributes = relation.get("attributes") or {}
        links.append(
            {
                "rel": relation.get("rel"),
                "name": attributes.get("name"),
                "url": relation.get("url"),
                "targetId": int(match.group(1)),
                "attributes": attributes,
            }
        )
    return links


async def get_linked_work_items(client: AzureDevOpsClient, work_item_id: int) -> list[dict[str, Any]]:
    links = await get_work_item_links(client, work_item_id)
    ids = list(dict.fromkeys(link["targetId"] for link in links))
    if not ids:
        return []
    by_id = {item.get("id"): item for item in await client.get_work_items(ids)}
    return [{"link": link, "workItem": by_id.get(link["targetId"])} for link in links]
