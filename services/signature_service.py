"""
Signature Service

One capture/persist path for every signature field: duty slip authoriser
and guest signatures, client close-out and salary slip signatures.

A signature value is empty, an inline PNG data URL, or a URL to an already
stored image. Inline payloads are validated (prefix, base64, real image)
before anything is written. In ``upload`` mode the image is stored under a
content-hash file name, so a retried upload writes nothing new, and files
created inside a failed transaction are removed again.
"""

import base64
import binascii
import hashlib
import io
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from errors import PayloadError
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)

INLINE_PREFIX = 'data:image/png;base64,'
STORAGE_MODES = ('inline', 'upload')


@dataclass(frozen=True)
class SignaturePayload:
    field: str
    data_url: str
    image_bytes: bytes

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.image_bytes).hexdigest()


class SignatureCapture:
    """Validates the signature value for one target field"""

    def __init__(self, field: str):
        self.field = field

    @staticmethod
    def is_empty(value: Any) -> bool:
        return value is None or (isinstance(value, str) and value.strip() == '')

    @staticmethod
    def is_url(value: Any) -> bool:
        return isinstance(value, str) and value.startswith(('http://', 'https://', '/signatures/'))

    def capture(self, value: Any) -> Optional[SignaturePayload]:
        """Decode an inline payload; None when the field was left empty"""
        if self.is_empty(value):
            return None
        if not isinstance(value, str) or not value.startswith(INLINE_PREFIX):
            raise PayloadError(f"{self.field}: signature must be a PNG data URL",
                               fields={self.field: 'Invalid signature format'})

        encoded = value[len(INLINE_PREFIX):]
        try:
            image_bytes = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise PayloadError(f"{self.field}: signature is not valid base64",
                               fields={self.field: 'Invalid signature data'})
        if not image_bytes:
            raise PayloadError(f"{self.field}: signature is empty",
                               fields={self.field: 'Empty signature'})

        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise PayloadError(f"{self.field}: signature is not a readable image",
                               fields={self.field: 'Unreadable signature image'})

        return SignaturePayload(field=self.field, data_url=value, image_bytes=image_bytes)


class SignatureService:
    """Decides how captured signatures are persisted"""

    def __init__(self, mode: str = 'inline', upload_folder: str = 'uploads/signatures',
                 public_base_url: str = ''):
        if mode not in STORAGE_MODES:
            raise ValueError(f"Unknown signature storage mode: {mode}")
        self.mode = mode
        self.upload_folder = upload_folder
        self.public_base_url = public_base_url.rstrip('/')

    def resolve(self, field: str, value: Any, compensate: bool = True) -> str:
        """Return the value to store for ``field``"""
        capture = SignatureCapture(field)
        if capture.is_empty(value):
            return ''
        if capture.is_url(value):
            return value
        payload = capture.capture(value)
        if self.mode == 'inline':
            return payload.data_url
        return self.upload(payload, compensate=compensate)

    def resolve_fields(self, record: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
        """Resolve every signature field present in ``record``, in place"""
        for field in fields:
            if field in record:
                record[field] = self.resolve(field, record[field])
        return record

    def upload(self, payload: SignaturePayload, file_name: Optional[str] = None,
               compensate: bool = True) -> str:
        """Write the PNG under a content-addressed name and return its URL"""
        stem = secure_filename(os.path.splitext(file_name or payload.field)[0]) or 'signature'
        filename = f"{stem}-{payload.digest[:24]}.png"
        os.makedirs(self.upload_folder, exist_ok=True)
        path = os.path.join(self.upload_folder, filename)

        if os.path.exists(path):
            logger.debug(f"Signature {filename} already stored")
        else:
            with open(path, 'wb') as handle:
                handle.write(payload.image_bytes)
            logger.info(f"Stored signature {filename} ({len(payload.image_bytes)} bytes)")
            if compensate:
                TransactionHelper.register_rollback_action(lambda: self._remove(path))

        return f"{self.public_base_url}/signatures/{filename}"

    def upload_data_url(self, data_url: Any, file_name: Optional[str] = None) -> str:
        """Standalone upload: validate, store, return the URL"""
        payload = SignatureCapture(file_name or 'signatureData').capture(data_url)
        if payload is None:
            raise PayloadError("signatureData is required", fields={'signatureData': 'Required'})
        return self.upload(payload, file_name=file_name, compensate=False)

    @staticmethod
    def _remove(path: str) -> None:
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Removed signature {os.path.basename(path)} after rollback")
