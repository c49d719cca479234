"""
Request signing, body encryption and header assembly for the ShowStart API.
"""
import base64
import hashlib
import json
import logging
import random
import string
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Protocol

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import RequestBuildError
from .models import DEFAULT_BASE_URL, Credentials, SessionIdentifiers

logger = logging.getLogger(__name__)

TRACE_ID_LENGTH = 32
TRACE_ID_ALPHABET = string.ascii_letters + string.digits

# Paths whose body the upstream only accepts encrypted.
ENCRYPTED_PATHS: FrozenSet[str] = frozenset({
    "/order/wap/order/confirm",
    "/order/wap/order/order",
    "/order/wap/order/getCoreOrderResult",
    "/wap/activity/V2/info",
})

NIL_SENTINEL = "nil"


class Signer(Protocol):
    """Computes the ``crpsign`` header for a request."""

    def sign(self, path: str, body: str, trace_id: str, session: SessionIdentifiers) -> str:
        ...


class BodyCipher(Protocol):
    """Encrypts request bodies for paths on the encryption allow-list."""

    def derive_key(self, trace_id: str, token: str) -> bytes:
        ...

    def encrypt(self, plaintext: str, key: bytes) -> str:
        ...


class Md5Signer:
    """MD5 digest over the session identifiers, path, body and trace id."""

    def sign(self, path: str, body: str, trace_id: str, session: SessionIdentifiers) -> str:
        material = "".join([
            session.access_token,
            session.sign,
            session.id_token,
            session.user_id,
            session.terminal,
            session.token,
            body,
            path,
            trace_id,
        ])
        return hashlib.md5(material.encode("utf-8")).hexdigest()


class AesCipher:
    """AES-128-ECB with PKCS7 padding; ciphertext is base64 encoded."""

    key_size = 16

    def derive_key(self, trace_id: str, token: str) -> bytes:
        material = (trace_id + token).encode("utf-8")
        if len(material) < self.key_size:
            raise ValueError(f"key material too short ({len(material)} bytes)")
        return material[:self.key_size]

    def encrypt(self, plaintext: str, key: bytes) -> str:
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(ciphertext).decode("ascii")


def generate_trace_id(length: int = TRACE_ID_LENGTH) -> str:
    """Random alphanumeric correlation id, also used to derive the body key."""
    return "".join(random.choices(TRACE_ID_ALPHABET, k=length))


@dataclass
class PreparedRequest:
    """A fully signed request ready to be sent."""
    method: str
    path: str
    url: str
    body: str
    trace_id: str
    signature: str
    headers: Dict[str, str] = field(default_factory=dict)
    encrypted: bool = False


class SignedRequestBuilder:
    """Builds signed (and where required, encrypted) requests."""

    def __init__(
        self,
        signer: Optional[Signer] = None,
        cipher: Optional[BodyCipher] = None,
        base_url: str = DEFAULT_BASE_URL,
        encrypted_paths: FrozenSet[str] = ENCRYPTED_PATHS,
    ):
        self.signer = signer or Md5Signer()
        self.cipher = cipher or AesCipher()
        self.base_url = base_url.rstrip("/")
        self.encrypted_paths = encrypted_paths

    def build(self, method: str, path: str, body: str, credentials: Credentials) -> PreparedRequest:
        """Build one request.

        Raises:
            RequestBuildError: if encryption or signing fails. Such failures
                are never retried.
        """
        trace_id = generate_trace_id()
        encrypted = path in self.encrypted_paths

        if encrypted:
            try:
                key = self.cipher.derive_key(trace_id, credentials.token)
                ciphertext = self.cipher.encrypt(body, key)
            except Exception as e:
                raise RequestBuildError(f"Failed to encrypt body for {path}: {e}") from e
            body = json.dumps({"q": ciphertext}, separators=(",", ":"))

        try:
            signature = self.signer.sign(path, body, trace_id, credentials.session())
        except Exception as e:
            raise RequestBuildError(f"Failed to sign request for {path}: {e}") from e

        logger.debug(f"Built {method} {path} (trace={trace_id}, encrypted={encrypted})")
        return PreparedRequest(
            method=method,
            path=path,
            url=f"{self.base_url}{path}",
            body=body,
            trace_id=trace_id,
            signature=signature,
            headers=self._headers(credentials, trace_id, signature),
            encrypted=encrypted,
        )

    @staticmethod
    def _headers(credentials: Credentials, trace_id: str, signature: str) -> Dict[str, str]:
        return {
            "content-type": "application/json",
            "cookie": credentials.cookie,
            "cdeviceinfo": credentials.device_info,
            "cdeviceno": credentials.device_no,
            "cusut": credentials.user_token,
            "csappid": credentials.app_id,
            "cterminal": credentials.terminal,
            "cusid": credentials.user_id,
            "cusname": credentials.user_name,
            "cuuserref": credentials.user_ref,
            "cversion": credentials.client_version,
            "st_flpv": credentials.st_flpv,
            "crtraceid": trace_id,
            "crpsign": signature,
            "cusat": credentials.access_token or NIL_SENTINEL,
            "cusit": credentials.id_token or NIL_SENTINEL,
        }
