"""QR code rendering for verification URLs and check-in tokens.

Output is a PNG data URI, embeddable directly in JSON responses, emails
and <img> tags.  Rendering is deterministic: the same input always gives
the same bytes, so a regenerated image matches the one stored at issuance.
"""

from __future__ import annotations

import logging

import segno

logger = logging.getLogger(__name__)

QR_SCALE = 8
QR_BORDER = 1  # quiet zone, in modules


def make_qr_data_uri(data: str) -> str:
    """Encode ``data`` as a full-size QR symbol (never Micro QR).

    Raises ValueError when ``data`` is empty or too long for a QR symbol.
    """
    if not data:
        raise ValueError("cannot encode an empty QR payload")
    try:
        qr = segno.make_qr(data, error="m")
    except segno.DataOverflowError as e:
        raise ValueError(str(e)) from e
    return qr.png_data_uri(scale=QR_SCALE, border=QR_BORDER)


def try_qr_data_uri(data: str) -> str | None:
    """make_qr_data_uri for best-effort callers: None (logged) on failure."""
    try:
        return make_qr_data_uri(data)
    except ValueError:
        logger.exception("QR rendering failed for payload of length %d", len(data))
        return None
