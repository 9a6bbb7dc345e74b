# agency/repositories/profiles.py
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter
from pydantic import ValidationError

from agency.core.errors import ProfileFetchFailure, ProfileNotFound, WriteFailure
from agency.schemas.user import UserProfile

COL = "users"


class ProfileStore:
    """`users/{uid}` documents."""

    def __init__(self, db):
        self._db = db

    def get(self, uid: str) -> UserProfile:
        try:
            snap = self._db.collection(COL).document(uid).get()
        except GoogleAPIError as exc:
            raise ProfileFetchFailure(f"Falha ao ler perfil {uid}") from exc
        if not snap.exists:
            raise ProfileNotFound(f"Perfil {uid} não encontrado")
        try:
            return UserProfile.from_doc(uid, snap.to_dict() or {})
        except ValidationError as exc:
            raise ProfileFetchFailure(f"Perfil {uid} inválido") from exc

    def update(self, uid: str, partial: Dict[str, Any]) -> None:
        try:
            self._db.collection(COL).document(uid).update({**partial, "updated_at": SERVER_TIMESTAMP})
        except NotFound as exc:
            raise ProfileNotFound(f"Perfil {uid} não encontrado") from exc
        except GoogleAPIError as exc:
            raise WriteFailure("Não foi possível salvar o perfil. Tente novamente.") from exc

    def list(self, role: Optional[str] = None) -> List[UserProfile]:
        q = self._db.collection(COL)
        if role:
            q = q.where(filter=FieldFilter("role", "==", role))
        try:
            snaps = list(q.stream())
        except GoogleAPIError as exc:
            raise ProfileFetchFailure("Falha ao listar usuários") from exc
        out: List[UserProfile] = []
        for snap in snaps:
            try:
                out.append(UserProfile.from_doc(snap.id, snap.to_dict() or {}))
            except ValidationError:
                continue
        out.sort(key=lambda p: (p.displayName or p.email or "").lower())
        return out
