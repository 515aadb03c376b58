"""Request body decompression.

Response compression is Starlette's GZipMiddleware, mounted outermost in
src/main.py. This stage covers the inbound half: it picks a decoder from
Content-Encoding and leaves the actual inflation to the first body read,
so failures surface after the cross-origin headers are in place.
"""

import gzip
import zlib

from src.middleware.pipeline import ContentDecoder, Exchange, StageError


def _inflate(body: bytes) -> bytes:
    """zlib-wrapped deflate, falling back to raw deflate streams."""
    try:
        return zlib.decompress(body)
    except zlib.error:
        return zlib.decompress(body, -zlib.MAX_WBITS)


DECODERS: dict[str, ContentDecoder] = {
    "gzip": gzip.decompress,
    "x-gzip": gzip.decompress,
    "deflate": _inflate,
}


def _decoder_for(encoding: str) -> ContentDecoder:
    decoder = DECODERS.get(encoding)

    def decode(body: bytes) -> bytes:
        if not body:
            return body
        if decoder is None:
            raise StageError(415, f'unsupported content encoding "{encoding}"')
        try:
            return decoder(body)
        except (OSError, EOFError, zlib.error) as e:
            raise StageError(400, "Invalid compressed request body") from e

    return decode


async def decompress_body(exchange: Exchange) -> None:
    encoding = exchange.headers.get("content-encoding", "identity").strip().lower()
    if encoding in ("", "identity"):
        return None
    exchange.content_decoder = _decoder_for(encoding)
    return None
