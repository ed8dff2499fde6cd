"""Private chart, data and dashboard endpoints.

Every route is addressed by the user's dashboard token; unknown tokens get
a 403.
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Request, HTTPException
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, Field

from logging_config import get_logger
from services.chart_service import render_series_async
from services.measurement_store import get_measurement_store
from services.token_service import get_user_id_for_token
from utils.dashboard_page import render_dashboard

router = APIRouter()
logger = get_logger()


class DataPointOut(BaseModel):
    """A data point as served to the dashboard."""

    key: str
    value: float
    timestamp: str
    formatted_date: str = Field(serialization_alias="formattedDate")
    formatted_time: str = Field(serialization_alias="formattedTime")


def _resolve_user(token: str) -> int:
    user_id = get_user_id_for_token(token)
    if user_id is None:
        raise HTTPException(status_code=403, detail="Invalid token")
    return user_id


async def _load_points(user_id: int):
    # Store reads take file locks and may hit the disk
    return await asyncio.to_thread(get_measurement_store().all_points, user_id)


def _parse_key_list(raw: Optional[str]) -> set[str]:
    if not raw:
        return set()
    return {key.strip() for key in raw.split(",") if key.strip()}


@router.get("/chart/{token}")
async def get_chart(request: Request, token: str, hidden: Optional[str] = None):
    """Render the user's timeline chart as PNG.

    Args:
        token: The user's dashboard token
        hidden: Comma-separated metric names to leave out of the chart

    Returns:
        PNG image; a placeholder image when every metric is hidden
    """
    request_id = request.state.request_id
    user_id = _resolve_user(token)

    try:
        points = await _load_points(user_id)
        if not points:
            raise HTTPException(status_code=404, detail="No data available")

        hidden_keys = _parse_key_list(hidden)
        visible_keys = {p.key for p in points} - hidden_keys
        image = await render_series_async(points, visible_keys)

        logger.info(
            "Rendered chart",
            extra={
                "request_id": request_id,
                "user_id": user_id,
                "hidden_count": len(hidden_keys),
                "size": len(image)
            }
        )
        return Response(content=image, media_type="image/png")

    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            f"Failed to generate chart: {str(e)}",
            exc_info=True,
            extra={"request_id": request_id, "user_id": user_id, "error_type": type(e).__name__}
        )
        raise HTTPException(
            status_code=500,
            detail={"status": "error", "error": str(e), "message": "Error generating chart"}
        )


@router.get("/data/{token}")
async def get_data(request: Request, token: str):
    """Get all of the user's data points, oldest first."""
    request_id = request.state.request_id
    user_id = _resolve_user(token)

    try:
        points = await _load_points(user_id)
        if not points:
            raise HTTPException(status_code=404, detail="No data available")

        return [
            DataPointOut(
                key=p.key,
                value=p.value,
                timestamp=p.timestamp.isoformat(),
                formatted_date=p.timestamp.strftime("%d.%m.%Y"),
                formatted_time=p.timestamp.strftime("%H:%M:%S"),
            ).model_dump(by_alias=True)
            for p in points
        ]

    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            f"Failed to fetch data: {str(e)}",
            exc_info=True,
            extra={"request_id": request_id, "user_id": user_id, "error_type": type(e).__name__}
        )
        raise HTTPException(
            status_code=500,
            detail={"status": "error", "error": str(e), "message": "Error fetching data"}
        )


@router.get("/view/{token}", response_class=HTMLResponse)
async def view_dashboard(token: str):
    """Serve the user's dashboard page."""
    user_id = _resolve_user(token)
    points = await _load_points(user_id)
    return HTMLResponse(render_dashboard(
        token=token,
        point_count=len(points),
        metric_count=len({p.key for p in points}),
    ))
