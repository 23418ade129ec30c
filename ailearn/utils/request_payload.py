"""Read JSON or multipart request bodies into plain dicts."""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Request
from starlette.datastructures import UploadFile as StarletteUploadFile

from ailearn.core.exceptions import ValidationError

Files = Dict[str, List[StarletteUploadFile]]


async def read_payload(request: Request) -> Tuple[Dict[str, Any], Files]:
    """
    Return ``(fields, files)`` for a JSON, urlencoded or multipart body.

    Empty file inputs (no file selected in the browser) are ignored.
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Malformed JSON body")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body, {}

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields: Dict[str, Any] = {}
        files: Files = {}
        for key, value in form.multi_items():
            if isinstance(value, StarletteUploadFile):
                if value.filename:
                    files.setdefault(key, []).append(value)
            else:
                fields[key] = value
        return fields, files

    if await request.body():
        raise ValidationError("Unsupported content type")
    return {}, {}


def single_file(files: Files, field: str, allowed: Iterable[str] = ()) -> Optional[StarletteUploadFile]:
    """Pick the one upload under ``field``; reject unexpected or repeated file fields."""
    allowed = set(allowed) | {field}
    unexpected = sorted(set(files) - allowed)
    if unexpected:
        raise ValidationError.from_fields(
            [{"field": name, "message": "Unexpected file field"} for name in unexpected]
        )

    uploads = files.get(field) or []
    if len(uploads) > 1:
        raise ValidationError.from_fields([{"field": field, "message": "Only one file is allowed"}])
    return uploads[0] if uploads else None
