"""Utility functions for the einvoice app."""

import json

SENSITIVE_KEYS = frozenset({
    "certificatepassword", "password", "privatekey", "privatekeypem",
    "certificate", "certificatepem", "in0",  # in0 carries the signed login CMS
})
CREDENTIAL_KEYS = frozenset({"token", "sign"})


def mask_sensitive_fields(payload):
    """
    Mask sensitive fields before logging an Authority call.
    Masks: Token, Sign, certificate material, passwords and the login CMS.
    """
    return mask_sensitive_data(payload, mask_credentials=True)


def mask_sensitive_data(obj, mask_credentials: bool = True):
    """
    Recursively mask sensitive fields in a JSON-serializable object.

    Masks: password, private key, certificate.
    Optionally masks: Token and Sign of the Auth block.
    """
    if obj is None:
        return None
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [mask_sensitive_data(i, mask_credentials) for i in obj]
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            k_lower = str(k).lower().replace("_", "").replace("-", "")
            if k_lower in SENSITIVE_KEYS:
                out[k] = "[REDACTED]"
            elif mask_credentials and k_lower in CREDENTIAL_KEYS:
                out[k] = "[REDACTED]"
            else:
                out[k] = mask_sensitive_data(v, mask_credentials)
        return out
    return obj


def safe_json_dumps(obj, indent: int | None = None) -> str:
    """JSON dump with sensitive data masked."""
    return json.dumps(mask_sensitive_fields(obj), indent=indent, default=str)
