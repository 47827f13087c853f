import base64
import binascii
import logging

from azure.core.credentials import AzureNamedKeyCredential

from .errors import InvalidCredentialError

logger = logging.getLogger(__name__)

ACCOUNT_KEY_BYTES = 64


def resolve_credential(account: str, access_key: str) -> AzureNamedKeyCredential:
    """
    Turn an account name and access key into a shared-key credential.
    The key must be base64 and decode to a 512-bit secret.
    """
    try:
        if not account or not access_key:
            raise InvalidCredentialError("Account name and access key are required")
        try:
            secret = base64.b64decode(access_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidCredentialError(
                f"Access key for account '{account}' is not valid base64"
            ) from e
        if len(secret) != ACCOUNT_KEY_BYTES:
            raise InvalidCredentialError(
                f"Access key for account '{account}' decodes to {len(secret)} bytes, "
                f"expected {ACCOUNT_KEY_BYTES}"
            )
    except InvalidCredentialError as e:
        logger.warning("Invalid credentials: %s", e)
        raise
    return AzureNamedKeyCredential(account, access_key)
