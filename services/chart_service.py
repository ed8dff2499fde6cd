"""Chart service: renders measurement series to PNG images.

The timeline is drawn with matplotlib's object-oriented API on the Agg
backend (no pyplot state), so renders can run in worker threads. The
"no data" placeholder is drawn with Pillow.
"""

import asyncio
import colorsys
import io
from typing import Iterable, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
from matplotlib import dates as mdates  # noqa: E402
from matplotlib.backends.backend_agg import FigureCanvasAgg  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402
from PIL import Image, ImageDraw, ImageFont  # noqa: E402

from logging_config import get_logger  # noqa: E402
from config import config  # noqa: E402
from services.measurement_store import DataPoint  # noqa: E402

logger = get_logger()

NO_DATA_MESSAGE = "No data yet"
ALL_HIDDEN_MESSAGE = "No visible data - all metrics are hidden"
ALL_HIDDEN_HINT = "Click on a disabled legend item to show it"

DPI = 100


def color_for_index(index: int) -> str:
    """Hex color for the metric at ``index`` in the sorted list of all keys.

    Hue steps by 137 degrees (close to the golden angle) so neighbouring
    metrics get well separated colors. The dashboard page uses the same
    formula for its legend.
    """
    hue = (index * 137) % 360
    red, green, blue = colorsys.hls_to_rgb(hue / 360, 0.6, 0.7)
    return "#{:02x}{:02x}{:02x}".format(
        round(red * 255), round(green * 255), round(blue * 255)
    )


def key_colors(keys: Iterable[str]) -> dict[str, str]:
    """Map each key to its color by position in the sorted key list."""
    return {key: color_for_index(i) for i, key in enumerate(sorted(set(keys)))}


def _png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def render_placeholder(message: str, hint: Optional[str] = None) -> bytes:
    """Render a plain image with a centered message.

    Args:
        message: Main text, drawn in red
        hint: Optional second line, drawn in grey below the message

    Returns:
        PNG image bytes
    """
    width, height = config.PLACEHOLDER_WIDTH, config.PLACEHOLDER_HEIGHT
    image = Image.new("RGB", (width, height), "#f8f8f8")
    draw = ImageDraw.Draw(image)
    draw.rectangle((10, 10, width - 10, height - 10), outline="#dddddd", width=2)

    title_font = ImageFont.load_default(size=24)
    draw.text((width / 2, height / 2), message, fill="#d32f2f", font=title_font, anchor="mm")

    if hint:
        hint_font = ImageFont.load_default(size=16)
        draw.text((width / 2, height / 2 + 40), hint, fill="#555555", font=hint_font, anchor="mm")

    return _png_bytes(image)


def _spans_multiple_days(points: Sequence[DataPoint]) -> bool:
    first_day = points[0].timestamp.date()
    return any(p.timestamp.date() != first_day for p in points)


def render_series(
    points: Sequence[DataPoint],
    visible_keys: Optional[Iterable[str]] = None
) -> bytes:
    """Render a timeline chart with one line per metric.

    Args:
        points: Data points of all metrics, any order
        visible_keys: Metrics to draw; None draws all of them

    Returns:
        PNG image bytes. A placeholder image when nothing is left to draw.
    """
    colors = key_colors(p.key for p in points)

    if visible_keys is not None:
        visible = set(visible_keys)
        shown = [p for p in points if p.key in visible]
    else:
        shown = list(points)

    if not shown:
        if points:
            return render_placeholder(ALL_HIDDEN_MESSAGE, ALL_HIDDEN_HINT)
        return render_placeholder(NO_DATA_MESSAGE)

    series: dict[str, list[DataPoint]] = {}
    for point in sorted(shown, key=lambda p: p.timestamp):
        series.setdefault(point.key, []).append(point)

    figure = Figure(figsize=(config.CHART_WIDTH / DPI, config.CHART_HEIGHT / DPI), dpi=DPI)
    FigureCanvasAgg(figure)
    ax = figure.add_subplot()

    for key in sorted(series):
        key_points = series[key]
        ax.plot(
            [p.timestamp for p in key_points],
            [p.value for p in key_points],
            marker="o",
            linewidth=2,
            color=colors[key],
            label=key,
        )

    if _spans_multiple_days(shown):
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%d.%m.%Y %H:%M"))
    else:
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%H:%M:%S"))
    ax.tick_params(axis="x", labelrotation=45)

    if min(p.value for p in shown) >= 0:
        ax.set_ylim(bottom=0)

    ax.set_title("Data Timeline", fontsize=18)
    ax.set_xlabel("Time")
    ax.set_ylabel("Value")
    ax.grid(True, linestyle=":", linewidth=0.5)
    ax.legend(loc="upper left")
    figure.tight_layout()

    buffer = io.BytesIO()
    figure.savefig(buffer, format="png")
    logger.debug(
        "Rendered timeline chart",
        extra={"metrics": len(series), "points": len(shown), "size": buffer.tell()}
    )
    return buffer.getvalue()


async def render_series_async(
    points: Sequence[DataPoint],
    visible_keys: Optional[Iterable[str]] = None
) -> bytes:
    """Render on a worker thread so the event loop keeps serving requests."""
    return await asyncio.to_thread(render_series, points, visible_keys)
