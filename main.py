import argparse
import asyncio
import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from avatar_library import assets, image_ops
from avatar_library.errors import AvatarError, UploadRejected
from avatar_library.models import AvatarBase64Response, ErrorResponse, HealthResponse

# --- Environment & Config ---
DEFAULT_HOST = ":8089"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_EXTENSIONS = (".png", ".jpg", ".jpeg")

# Codes reported when the source image cannot be obtained, one per endpoint
DEMO_BASE64_ERROR = 10031
DEMO_IMG_ERROR = 10041
UPLOAD_BASE64_ERROR = 10051
UPLOAD_IMG_ERROR = 10061

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(filename)s:%(lineno)d: %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("avatar_hat")


# --- App Init ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    report = assets.check_assets()
    if report["foreground"] == "ok" and report["demo"] == "ok":
        logger.info("[startup] assets found in %s", report["images_dir"])
    else:
        logger.warning("[startup] asset problems, affected requests will fail: %s", report)
    yield


app = FastAPI(title="avatar-hat", lifespan=lifespan)


# --- Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "method: %s, uri: %s, status: %s, duration: %.2fms",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.exception_handler(AvatarError)
async def avatar_error_handler(request: Request, exc: AvatarError):
    logger.warning(
        "%s %s failed: %s code=%s msg=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc.code,
        exc.msg,
    )
    body = ErrorResponse(code=exc.code, msg=exc.msg)
    return JSONResponse(status_code=400, content=body.model_dump())


# --- Image sources ---
def _load_demo() -> bytes:
    return image_ops.normalize_to_png(assets.read_demo_image())


async def _demo_source(code: int) -> bytes:
    try:
        return await asyncio.to_thread(_load_demo)
    except AvatarError as e:
        raise e.with_code(code)


def _extension(filename: str) -> str:
    """Lowercased suffix from the last dot on, so '.png' counts as png."""
    name = os.path.basename(filename)
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[-1].lower()


async def _upload_source(file: Optional[UploadFile], code: int) -> bytes:
    """Validate and normalise an uploaded image.

    The extension is checked before anything is read, so an unsupported
    file is rejected without being decoded.
    """
    try:
        if file is None or not file.filename:
            raise UploadRejected("No file uploaded")
        ext = _extension(file.filename)
        if ext not in ALLOWED_EXTENSIONS:
            raise UploadRejected("The file type is incorrect. Only PNG/JPG format is supported")
        raw_data = await file.read()
        return await asyncio.to_thread(image_ops.normalize_to_png, raw_data)
    except AvatarError as e:
        raise e.with_code(code)


# --- Renderers ---
async def _render_base64(data: bytes) -> AvatarBase64Response:
    png = await asyncio.to_thread(image_ops.generate_avatar, data)
    return AvatarBase64Response(code=0, base64=image_ops.to_data_uri(png))


async def _render_img(data: bytes) -> Response:
    png = await asyncio.to_thread(image_ops.generate_avatar, data)
    # The body is PNG; the image/jpeg content type is kept for existing clients
    return Response(content=png, media_type="image/jpeg")


# --- Render Endpoints ---
ERROR_RESPONSES = {400: {"model": ErrorResponse}}


@app.get("/render/demo/base64", response_model=AvatarBase64Response, responses=ERROR_RESPONSES)
async def render_demo_base64():
    return await _render_base64(await _demo_source(DEMO_BASE64_ERROR))


@app.get("/render/demo/img", response_class=Response, responses=ERROR_RESPONSES)
async def render_demo_img():
    return await _render_img(await _demo_source(DEMO_IMG_ERROR))


@app.post("/render/base64", response_model=AvatarBase64Response, responses=ERROR_RESPONSES)
async def render_upload_base64(file: Optional[UploadFile] = File(None)):
    """Composite the hat over an uploaded PNG/JPG and return a data URI."""
    return await _render_base64(await _upload_source(file, UPLOAD_BASE64_ERROR))


@app.post("/render/img", response_class=Response, responses=ERROR_RESPONSES)
async def render_upload_img(file: Optional[UploadFile] = File(None)):
    """Composite the hat over an uploaded PNG/JPG and return the image.

    The response body is PNG encoded even though it is labelled
    ``image/jpeg``.
    """
    return await _render_img(await _upload_source(file, UPLOAD_IMG_ERROR))


@app.get("/healthz", response_model=HealthResponse)
async def healthz():
    report = await asyncio.to_thread(assets.check_assets)
    return HealthResponse(status="ok", assets=report)


# --- CLI ---
def parse_bind_address(address: str) -> Tuple[str, int]:
    """Split a ``[host]:port`` address; an empty host binds all interfaces."""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid bind address {address!r}, expected [host]:port")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve hat avatars over HTTP.")
    parser.add_argument(
        "--host",
        "-host",
        dest="host",
        default=os.getenv("HOST", DEFAULT_HOST),
        help="Bind address as [host]:port (default: $HOST or %s)" % DEFAULT_HOST,
    )
    args = parser.parse_args(argv)
    try:
        args.bind_host, args.bind_port = parse_bind_address(args.host)
    except ValueError as e:
        parser.error(str(e))
    return args


def main(argv: Optional[List[str]] = None) -> None:
    import uvicorn

    args = parse_args(argv)
    logger.info("[startup] listening on %s:%s", args.bind_host, args.bind_port)
    uvicorn.run(
        app,
        host=args.bind_host,
        port=args.bind_port,
        log_level=LOG_LEVEL.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
