# agency/repositories/proofs.py
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Optional
from uuid import uuid4

from google.api_core.exceptions import GoogleAPIError

from agency.core.errors import WriteFailure
from agency.schemas.event import PaymentProof

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(name: str) -> str:
    return _UNSAFE.sub("_", name).strip("._") or "comprovante"


class ProofStorage:
    """Payment proof files in Firebase Storage."""

    def __init__(self, bucket, public: bool = False, expires_hours: int = 24 * 7):
        self._bucket = bucket
        self._public = public
        self._expires = timedelta(hours=expires_hours)

    def upload(self, event_id: str, name: str, data: BinaryIO, content_type: Optional[str] = None) -> PaymentProof:
        """Upload the file and return the proof record (public or signed URL)."""
        proof_id = str(uuid4())
        path = f"events/{event_id}/payment_proofs/{proof_id}_{_safe_name(name)}"
        blob = self._bucket.blob(path)
        try:
            blob.upload_from_file(data, content_type=content_type or "application/octet-stream")
            if self._public:
                blob.make_public()
                url = blob.public_url
            else:
                url = blob.generate_signed_url(expiration=self._expires)
        except GoogleAPIError as exc:
            raise WriteFailure("Falha no upload do comprovante.") from exc
        return PaymentProof(id=proof_id, url=url, name=name, uploadedAt=datetime.now(timezone.utc))
