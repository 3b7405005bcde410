"""HMAC-SHA256 signatures in the scheme used by the eSewa ePay v2 API."""
import base64
import hashlib
import hmac


def canonical_string(data, field_names):
    """
    Join ``field=value`` pairs with commas, in the order of ``field_names``.

    Values are taken exactly as given; a missing field raises ``KeyError``.
    """
    return ",".join(f"{name}={data[name]}" for name in field_names)


def sign(message, secret_key):
    digest = hmac.new(secret_key.encode('utf-8'), message.encode('utf-8'), hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


def sign_fields(data, field_names, secret_key):
    return sign(canonical_string(data, field_names), secret_key)


def signed_field_names(data):
    """The field names listed in ``data['signed_field_names']``, in order."""
    return [name.strip() for name in str(data.get('signed_field_names') or '').split(',') if name.strip()]


def verify_signature(data, secret_key):
    """
    Check ``data['signature']`` against the fields listed in
    ``data['signed_field_names']``. Missing or malformed input is a mismatch.

    This only proves the listed fields were signed with ``secret_key``;
    callers decide which fields must be among them.
    """
    signature = data.get('signature')
    field_names = signed_field_names(data)
    if not signature or not field_names:
        return False

    try:
        expected = sign_fields(data, field_names, secret_key)
    except KeyError:
        return False

    return hmac.compare_digest(expected, str(signature))
