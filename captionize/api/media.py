"""Async client for the Cloudinary media storage/transformation API.

WHY: Burning subtitles into a video is done by the media provider, not
by us: the subtitle file is uploaded as a raw asset and a delivery URL
asks the provider to overlay it on the video. The caption core only has
to hand over well-formed SRT/VTT text; styling values are passed through
untouched except for mapping them onto the provider's parameter syntax.

HOW: CloudinaryClient wraps httpx.AsyncClient as an async context
manager. upload_subtitles() serializes blocks through the codec and
performs a signed upload. build_burn_in_url() is a pure function of the
public IDs and a SubtitleStyle. burn_in() chains the two.
build_watermark_url() overlays a remote image (logo) on a video through a
signed delivery URL; nothing is uploaded for it.

RULES:
- Uploads are signed: SHA-1 over the sorted "k=v&k=v" params + api_secret
- Watermark URLs are signed: s--<8 chars of base64url SHA-1(path + secret)>--
- Transport failures and malformed bodies surface as MediaError
- Fonts not in FONT_MAP fall back to Arial
- Any Arabic-script subtitle text switches the font to noto_naskh_arabic
- Unparseable background colours fall back to rgb:000000 at 50% opacity
- destroy() is best-effort and never raises
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
import time
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

import httpx

from captionize.config import CloudinarySettings
from captionize.core.models import CaptionBlock
from captionize.formatters.srt import format_srt
from captionize.formatters.vtt import contains_rtl, format_vtt

logger = logging.getLogger(__name__)

# CSS font-family values offered by the editor → names the video
# transformation engine accepts.
FONT_MAP: Dict[str, str] = {
    "Arial, sans-serif": "Arial",
    "Helvetica, sans-serif": "Helvetica",
    "Inter, sans-serif": "Inter",
    "Roboto, sans-serif": "Roboto",
    "Open Sans, sans-serif": "Open_Sans",
    "Lato, sans-serif": "Lato",
    "Montserrat, sans-serif": "Montserrat",
    "Poppins, sans-serif": "Poppins",
    "Oswald, sans-serif": "Oswald",
    "Bebas Neue, sans-serif": "Bebas_Neue",
    "Anton, sans-serif": "Anton",
    "Comfortaa, sans-serif": "Comfortaa",
    "Georgia, serif": "Georgia",
    "Times New Roman, serif": "Times_New_Roman",
    "Playfair Display, serif": "Playfair_Display",
    "Merriweather, serif": "Merriweather",
    "Lora, serif": "Lora",
    "Courier New, monospace": "Courier",
    "Source Code Pro, monospace": "Source_Code_Pro",
    "Pacifico, cursive": "Pacifico",
    "Dancing Script, cursive": "Dancing_Script",
    "Caveat, cursive": "Caveat",
    "Lobster, cursive": "Lobster",
    "Righteous, sans-serif": "Righteous",
}
DEFAULT_FONT = "Arial"
ARABIC_FONT = "noto_naskh_arabic"

DEFAULT_BOX = ("rgb:000000", 50)

WATERMARK_POSITIONS = frozenset({
    "north_west", "north", "north_east",
    "west", "center", "east",
    "south_west", "south", "south_east",
})
WATERMARK_PADDING_PX = 20
DEFAULT_WATERMARK_SCALE = 0.2
DEFAULT_WATERMARK_OPACITY = 80

_RGBA_RE = re.compile(
    r"^rgba\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*([0-9]*\.?[0-9]+)\s*\)$"
)


class MediaError(Exception):
    """Raised when the media provider rejects a request.

    RULES:
    - Always include status_code and message
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Cloudinary error {status_code}: {message}")


@dataclass
class SubtitleStyle:
    """Editor styling choices for burned-in subtitles.

    Values are opaque to the caption core; this module only maps them
    to transformation parameters.
    """

    font_family: str = "Arial, sans-serif"
    font_size: int = 48
    color: str = "#FFFFFF"
    background_color: str = "rgba(0,0,0,0.5)"
    outline_color: str = "transparent"
    bold: bool = False
    italic: bool = False
    underline: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> SubtitleStyle:
        """Build a style from a stored dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known and v is not None})


def parse_rgba(value: Optional[str]) -> Tuple[str, int]:
    """Convert ``rgba(r,g,b,a)`` to (``"rgb:rrggbb"``, opacity percent)."""
    match = _RGBA_RE.match((value or "").strip())
    if not match:
        return DEFAULT_BOX
    r, g, b = (min(255, int(match.group(i))) for i in (1, 2, 3))
    alpha = min(1.0, float(match.group(4)))
    return "rgb:{:02x}{:02x}{:02x}".format(r, g, b), round(alpha * 100)


def to_color_param(value: str) -> str:
    """``#FFFFFF`` → ``rgb:FFFFFF``; named colours pass through."""
    value = value.strip()
    if value.startswith("#"):
        return "rgb:" + value[1:]
    return value


def resolve_font(font_family: str, blocks: List[CaptionBlock]) -> str:
    if contains_rtl(blocks):
        return ARABIC_FONT
    return FONT_MAP.get(font_family, DEFAULT_FONT)


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """Compute the upload signature for a set of request parameters."""
    to_sign = "&".join("{}={}".format(k, params[k]) for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


def sign_delivery_path(path: str, api_secret: str) -> str:
    """Signature component for a delivery URL path (``s--xxxxxxxx--``)."""
    digest = hashlib.sha1((path + api_secret).encode("utf-8")).digest()
    return "s--{}--".format(base64.urlsafe_b64encode(digest).decode("ascii")[:8])


def to_fetch_source(url: str) -> str:
    """Encode a remote image URL for an ``l_fetch:`` overlay."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii")


class CloudinaryClient:
    """Async client for subtitle uploads and burned-in video delivery.

    RULES:
    - Use as: async with CloudinaryClient() as client: ...
    - settings defaults to CloudinarySettings.from_env()
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        settings: Optional[CloudinarySettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or CloudinarySettings.from_env()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> CloudinaryClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "CloudinaryClient must be used as an async context manager: "
                "async with CloudinaryClient() as client: ..."
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request; transport failures become MediaError(0, ...)."""
        client = self._ensure_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise MediaError(0, "{} {} failed: {}".format(method, url, exc)) from exc

    def _api_url(self, resource_type: str, action: str) -> str:
        return "{}/{}/{}/{}".format(
            self._settings.api_url.rstrip("/"), self._settings.cloud_name, resource_type, action
        )

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params, timestamp=int(time.time()))
        params["signature"] = sign_params(params, self._settings.api_secret)
        params["api_key"] = self._settings.api_key
        return params

    async def upload_subtitles(
        self,
        blocks: List[CaptionBlock],
        fmt: str = "srt",
        font_family: Optional[str] = None,
    ) -> str:
        """Serialize blocks and upload them as a raw subtitle asset.

        Returns:
            The public_id of the uploaded file (extension included).

        Raises:
            ValueError: If fmt is not "srt" or "vtt".
            MediaError: On transport failures, non-2xx or malformed responses.
        """
        if fmt == "srt":
            content = format_srt(blocks, renumber_ids=True)
        elif fmt == "vtt":
            content = format_vtt(blocks, font_family)
        else:
            raise ValueError("Unsupported subtitle format '{}'. Use 'srt' or 'vtt'.".format(fmt))

        public_id = "subtitles/captionize-{}.{}".format(int(time.time() * 1000), fmt)
        data = self._signed({"public_id": public_id})

        resp = await self._request(
            "POST",
            self._api_url("raw", "upload"),
            data=data,
            files={"file": (public_id.rsplit("/", 1)[-1], content.encode("utf-8"))},
        )
        if resp.status_code not in (200, 201):
            raise MediaError(resp.status_code, resp.text)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise MediaError(resp.status_code, "Invalid JSON in upload response: {}".format(resp.text[:200])) from exc
        uploaded = payload.get("public_id") if isinstance(payload, dict) else None
        if not uploaded:
            raise MediaError(resp.status_code, "No public_id returned for subtitle upload")
        logger.info("Uploaded %d subtitle blocks as %s", len(blocks), uploaded)
        return uploaded

    def build_burn_in_url(
        self,
        video_public_id: str,
        subtitle_public_id: str,
        style: SubtitleStyle,
        blocks: Optional[List[CaptionBlock]] = None,
    ) -> str:
        """Build the delivery URL that overlays subtitles onto a video.

        HOW: Two transformation components (the subtitle layer with its
        font and colours, then layer_apply with the background box and
        bottom placement), followed by quality and the video's public ID
        as mp4.
        """
        font = resolve_font(style.font_family, blocks or [])
        font_spec = "{}_{}".format(font, int(style.font_size))
        if style.bold:
            font_spec += "_bold"
        if style.italic:
            font_spec += "_italic"
        if style.underline:
            font_spec += "_underline"

        layer = ["l_subtitles:{}:{}".format(font_spec, subtitle_public_id.replace("/", ":"))]
        layer.append("co_{}".format(to_color_param(style.color or "#FFFFFF")))
        if style.outline_color and style.outline_color != "transparent":
            layer.append("bo_2px_solid_{}".format(to_color_param(style.outline_color)))

        box_color, box_opacity = parse_rgba(style.background_color)
        apply = ["fl_layer_apply", "b_{}".format(box_color), "o_{}".format(box_opacity), "g_south", "y_30"]

        return "{}/{}/video/upload/{}/{}/q_auto/{}.mp4".format(
            self._settings.delivery_url.rstrip("/"),
            self._settings.cloud_name,
            ",".join(layer),
            ",".join(apply),
            video_public_id,
        )

    async def burn_in(
        self,
        video_public_id: str,
        blocks: List[CaptionBlock],
        style: Optional[SubtitleStyle] = None,
    ) -> str:
        """Upload blocks as SRT and return the burned-in video URL."""
        style = style or SubtitleStyle()
        subtitle_public_id = await self.upload_subtitles(blocks, fmt="srt")
        return self.build_burn_in_url(video_public_id, subtitle_public_id, style, blocks)

    def build_watermark_url(
        self,
        video_public_id: str,
        image_url: str,
        position: str = "north_east",
        scale: float = DEFAULT_WATERMARK_SCALE,
        opacity: int = DEFAULT_WATERMARK_OPACITY,
    ) -> str:
        """Build a signed delivery URL that overlays an image on a video.

        HOW: One transformation component: the image is fetched remotely
        (l_fetch with its URL base64url-encoded), scaled relative to the
        video width, placed at a compass gravity with 20px padding. The
        path is signed so the fetch overlay cannot be swapped.

        RULES:
        - position is a gravity name from WATERMARK_POSITIONS
        - 0 < scale <= 1 (fraction of the video width)
        - 0 <= opacity <= 100

        Raises:
            ValueError: On an unknown position or out-of-range values.
        """
        if position not in WATERMARK_POSITIONS:
            raise ValueError(
                "Unknown watermark position '{}'. Use one of: {}".format(
                    position, ", ".join(sorted(WATERMARK_POSITIONS))
                )
            )
        if not 0 < scale <= 1:
            raise ValueError("Watermark scale must be in (0, 1], got {}".format(scale))
        if not 0 <= opacity <= 100:
            raise ValueError("Watermark opacity must be in [0, 100], got {}".format(opacity))

        transformation = ",".join([
            "l_fetch:{}".format(to_fetch_source(image_url)),
            "c_scale",
            "fl_relative",
            "w_{:g}".format(scale),
            "g_{}".format(position),
            "o_{}".format(int(opacity)),
            "x_{}".format(WATERMARK_PADDING_PX),
            "y_{}".format(WATERMARK_PADDING_PX),
        ])
        path = "{}/{}.mp4".format(transformation, video_public_id)
        return "{}/{}/video/upload/{}/{}".format(
            self._settings.delivery_url.rstrip("/"),
            self._settings.cloud_name,
            sign_delivery_path(path, self._settings.api_secret),
            path,
        )

    async def fetch_video(self, url: str) -> bytes:
        """Download a (transformed) video.

        Raises:
            MediaError: On transport failures or non-2xx responses.
        """
        resp = await self._request("GET", url)
        if resp.status_code != 200:
            logger.error("Video fetch failed with status %s: %s", resp.status_code, resp.text[:200])
            raise MediaError(resp.status_code, "Failed to fetch processed video")
        return resp.content

    async def destroy(self, public_id: str, resource_type: str = "video") -> None:
        """Delete an asset from the provider (best-effort)."""
        client = self._ensure_client()
        try:
            resp = await client.post(
                self._api_url(resource_type, "destroy"),
                data=self._signed({"public_id": public_id}),
            )
        except httpx.HTTPError:
            logger.warning("Failed to destroy %s asset %s", resource_type, public_id)
            return
        if resp.status_code != 200:
            logger.warning("Failed to destroy %s asset %s: %s", resource_type, public_id, resp.status_code)
