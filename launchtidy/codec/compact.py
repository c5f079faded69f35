"""
Compact codec: the lossy, name-only layout exchanged with a text-generation collaborator.

    Root := Page[]
    Page := Item[]
    Item := AppName | [FolderName, AppName[]]

Encoding drops identities and keeps only the first Page of each Folder (Apps
of Folders nested inside that Page are flattened into its name list). Decoding
resolves names through a name -> App index and marks every node unassigned
(id 0); identities are reattached later by the relational sync.
"""
from __future__ import annotations

import json
from typing import Any, List, Mapping, Union

from launchtidy.contract_store import shipped_contracts
from launchtidy.core.errors import EncodeAssumptionViolation, NameNotFoundError, ParseFailure
from launchtidy.core.model import UNASSIGNED, App, Folder, Page, RootFolder
from launchtidy.intake._json_extract import extract_first_json_array, strip_code_fence

CompactApp = str
CompactFolder = List[Any]  # [name, [app names]]
CompactItem = Union[CompactApp, CompactFolder]
CompactPage = List[CompactItem]
CompactRoot = List[CompactPage]

COMPACT_SCHEMA = "compact_root.schema.json"


def _nesting_error(message: str, item: Any) -> EncodeAssumptionViolation:
    return EncodeAssumptionViolation(
        code="tree.invalid_nesting",
        message=message,
        data={"kind": getattr(item, "kind", type(item).__name__), "id": getattr(item, "id", None)},
    )


def _folder_names(folder: Folder) -> List[str]:
    if not folder.children:
        return []
    first = folder.children[0]
    if not isinstance(first, Page):
        raise _nesting_error("Folder children must be Pages", first)
    names: List[str] = []
    for item in first.children:
        if isinstance(item, App):
            names.append(item.name)
        elif isinstance(item, Folder):
            names.extend(_folder_names(item))
        else:
            raise _nesting_error("Pages may only hold Apps and Folders", item)
    return names


def encode_page(page: Page) -> CompactPage:
    out: CompactPage = []
    for item in page.children:
        if isinstance(item, App):
            out.append(item.name)
        elif isinstance(item, Folder):
            out.append([item.name or "", _folder_names(item)])
        else:
            raise _nesting_error("Pages may only hold Apps and Folders", item)
    return out


def encode(root: RootFolder) -> CompactRoot:
    pages: CompactRoot = []
    for item in root.children:
        if not isinstance(item, Page) or isinstance(item, Folder):
            raise _nesting_error("Root children must be Pages", item)
        pages.append(encode_page(item))
    return pages


def dumps(compact: CompactRoot) -> str:
    # Single line, non-ASCII kept verbatim: app names must survive byte-for-byte.
    return json.dumps(compact, ensure_ascii=False, separators=(",", ":"))


def validate_shape(payload: Any) -> CompactRoot:
    errs = shipped_contracts().validate(COMPACT_SCHEMA, payload)
    if errs:
        raise ParseFailure(
            code="compact.invalid_shape",
            message="Payload does not match the compact layout shape",
            data={"errors": errs[:20]},
        )
    return payload


def parse_compact(text: str) -> CompactRoot:
    """
    Parse a collaborator response into the compact layout.

    A surrounding code fence is stripped first. When the remaining text is not
    JSON on its own, the first JSON array embedded in it is used instead.
    """
    body = strip_code_fence(text or "")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        payload = extract_first_json_array(body)
        if payload is None:
            raise ParseFailure(
                code="compact.invalid_json", message="Response is not valid JSON", data={"error": str(e)}
            ) from e
    return validate_shape(payload)


def _resolve(name_index: Mapping[str, App], name: str) -> App:
    app = name_index.get(name)
    if app is None:
        raise NameNotFoundError.for_name(name)
    return App(id=UNASSIGNED, name=app.name, bundle_id=app.bundle_id)


def decode(name_index: Mapping[str, App], compact: Any) -> RootFolder:
    compact = validate_shape(compact)
    pages: List[Page] = []
    for raw_page in compact:
        page = Page()
        for raw_item in raw_page:
            if isinstance(raw_item, str):
                page.children.append(_resolve(name_index, raw_item))
                continue
            folder_name, app_names = raw_item
            page.children.append(
                Folder(name=folder_name, children=[Page(children=[_resolve(name_index, n) for n in app_names])])
            )
        pages.append(page)
    return RootFolder(children=pages)


def name_index(apps: List[App]) -> dict[str, App]:
    return {app.name: app for app in apps}
