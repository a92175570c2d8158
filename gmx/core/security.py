import hashlib
import hmac
from typing import Optional
from urllib.parse import parse_qs

SIGNATURE_256_HEADER = "X-Hub-Signature-256"
SIGNATURE_HEADER = "X-Hub-Signature"

_ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


class WebhookValidationError(Exception):
    pass


def create_signature(secret: bytes, body: bytes, algorithm: str = "sha256") -> str:
    """signature header value GitHub sends for body, e.g. sha256=<hex>"""
    digest = hmac.new(secret, body, _ALGORITHMS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(secret: bytes, body: bytes, signature: Optional[str]) -> None:
    if not signature:
        raise WebhookValidationError("Missing signature")

    algorithm, _, digest = signature.partition("=")
    if algorithm not in _ALGORITHMS or not digest:
        raise WebhookValidationError(f"Unsupported signature format: {algorithm}")

    #header values may carry any latin-1 text, compare_digest only takes ascii str
    expected = create_signature(secret, body, algorithm).encode("ascii")
    if not hmac.compare_digest(expected, signature.encode("utf-8", "surrogateescape")):
        raise WebhookValidationError("Payload signature check failed")


def validate_payload(
    secret: bytes,
    body: bytes,
    content_type: Optional[str],
    signature_256: Optional[str] = None,
    signature: Optional[str] = None,
) -> bytes:
    """
    check the webhook signature and return the JSON payload.

    The sha256 signature is preferred; the legacy sha1 one is only used when
    no sha256 signature was sent. Form encoded deliveries carry the JSON in
    the "payload" field.
    """
    verify_signature(secret, body, signature_256 or signature)

    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type == "application/json":
        return body
    if media_type == "application/x-www-form-urlencoded":
        form = parse_qs(body.decode("utf-8", errors="replace"))
        if "payload" not in form:
            raise WebhookValidationError("Form body has no payload field")
        return form["payload"][0].encode("utf-8")
    raise WebhookValidationError(f"Unsupported content type: {content_type}")
