from html import escape

from fastapi import APIRouter, Query, Response

router = APIRouter(tags=["Avatars"])

PALETTE = ["#877eff", "#ff5a5a", "#ffb620", "#24a0ed", "#4caf50", "#9c27b0"]


def initials(name: str) -> str:
    """``"Ada Lovelace"`` -> ``"AL"``"""
    parts = [p for p in name.split() if p]
    return "".join(p[0] for p in parts[:2]).upper() or "?"


@router.get("/initials")
async def initials_avatar(name: str = Query(..., min_length=1), size: int = Query(128, ge=16, le=1024)):
    """SVG placeholder avatar used until a user uploads a picture."""
    color = PALETTE[sum(map(ord, name)) % len(PALETTE)]
    svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}" viewBox="0 0 100 100">'
        f'<rect width="100" height="100" fill="{color}"/>'
        f'<text x="50" y="50" dy=".35em" text-anchor="middle" font-family="Inter, sans-serif" '
        f'font-size="40" fill="#ffffff">{escape(initials(name))}</text>'
        "</svg>"
    )
    return Response(content=svg, media_type="image/svg+xml")
