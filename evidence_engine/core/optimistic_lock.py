from __future__ import annotations

from fastapi import HTTPException, Response, status


def parse_if_match(if_match: str | None) -> int | None:
    """
    Read an evaluation version out of an If-Match header.

    Both ``3`` and the quoted ETag form ``"3"`` are accepted. The header is
    optional: None means the caller did not ask for a version check.
    """
    if if_match is None or not if_match.strip():
        return None

    raw = if_match.strip().removeprefix("W/").strip('"')
    if not raw.isdigit() or int(raw) <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid If-Match header {if_match!r} (expected a positive integer version)",
        )
    return int(raw)


def check_version(current_version: int, if_match: str | None) -> None:
    """409 when the client's version is behind the stored row."""
    expected = parse_if_match(if_match)
    if expected is not None and expected != current_version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "stale_version",
                "message": "Evaluation was modified by another request",
                "details": {"current": current_version, "if_match": expected},
            },
        )


def set_etag(response: Response, version: int) -> None:
    response.headers["ETag"] = f'"{version}"'
