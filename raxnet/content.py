"""Content negotiation: accept markdown (with YAML frontmatter) or JSON."""

from __future__ import annotations

import json

import frontmatter
from fastapi import Request, Response
from pydantic import BaseModel

from raxnet.errors import InvalidInput

# Fields rendered as the markdown body instead of frontmatter, first match wins
BODY_KEYS = ("description", "admin_notes", "message")


async def parse_body(request: Request, body_field: str | None = None) -> dict:
    """Parse request body as JSON or markdown with YAML frontmatter.

    For markdown, the text below the frontmatter lands in ``body_field``
    when one is given and is dropped otherwise.
    """
    content_type = request.headers.get("content-type", "")
    raw = await request.body()
    text = raw.decode("utf-8").strip()

    if not text:
        return {}

    if "application/json" in content_type:
        return _load_json(text)

    if text.startswith("{") and "text/markdown" not in content_type:
        try:
            return _load_json(text)
        except InvalidInput:
            pass

    post = frontmatter.loads(text)
    result = dict(post.metadata)
    if body_field and post.content.strip():
        result[body_field] = post.content.strip()
    return result


def _load_json(text: str) -> dict:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidInput(f"Malformed JSON body: {e.msg}") from e
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be an object")
    return data


def wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "application/json" in accept


def render_response(
    request: Request,
    data: dict | BaseModel,
    status_code: int = 200,
    headers: dict | None = None,
) -> Response:
    """Return JSON or markdown based on Accept header."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")

    if wants_json(request):
        return Response(
            content=json.dumps(data, indent=2, default=str),
            status_code=status_code,
            media_type="application/json",
            headers=headers,
        )

    data = dict(data)

    body_key = next((k for k in BODY_KEYS if isinstance(data.get(k), str)), None)
    body = data.pop(body_key) if body_key else ""
    if data:
        content = frontmatter.dumps(frontmatter.Post(body, **_plain(data)))
    else:
        content = body

    return Response(
        content=content,
        status_code=status_code,
        media_type="text/markdown",
        headers=headers,
    )


def _plain(data: dict) -> dict:
    # Round-trip through JSON so the YAML dumper only sees builtin types
    return json.loads(json.dumps(data, default=str))
