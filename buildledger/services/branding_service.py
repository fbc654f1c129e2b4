from __future__ import annotations

import logging
import mimetypes
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from buildledger.errors import LogoUploadError
from buildledger.models.profile import Profile
from buildledger.services.session_service import SessionService
from buildledger.settings import default_data_dir
from buildledger.storage.repo import JsonRepository

logger = logging.getLogger(__name__)

MAX_LOGO_BYTES = 5 * 1024 * 1024


def _safe_filename(name: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", (name or "").strip())
    return name.strip("._") or "logo"


class BrandingService:
    """Company profile and logo, one profile per user."""

    def __init__(self, session: SessionService, data_dir: Optional[str | Path] = None) -> None:
        base = Path(data_dir) if data_dir else default_data_dir()
        self.repo = JsonRepository(base / "profiles.json", entity_name="profile", key="id")
        self.logos_dir = base / "logos"
        self.session = session

    def get_profile(self) -> Profile:
        user_id = self.session.get_current_user_id()
        row = self.repo.get_by_id(user_id)
        return Profile.model_validate(row) if row else Profile(id=user_id)

    def save_profile(self, profile: Profile) -> Profile:
        profile = profile.model_copy(update={"id": self.session.get_current_user_id()})
        self.repo.upsert(profile.model_dump(mode="json"))
        return profile

    # ---------- logo ---------- #

    def upload_logo(self, filename: str, content: bytes, content_type: Optional[str] = None) -> Profile:
        ctype = content_type or mimetypes.guess_type(filename or "")[0] or ""
        if not ctype.startswith("image/"):
            raise LogoUploadError("Invalid file type. Only images are allowed.")
        if not content:
            raise LogoUploadError("No file provided")
        if len(content) > MAX_LOGO_BYTES:
            raise LogoUploadError("File size must be less than 5MB")

        profile = self.get_profile()
        user_dir = self.logos_dir / profile.id
        user_dir.mkdir(parents=True, exist_ok=True)
        target = user_dir / f"{datetime.now():%Y%m%d%H%M%S}-{_safe_filename(filename)}"
        target.write_bytes(content)

        previous = profile.logo_path
        profile = self.save_profile(profile.model_copy(update={
            "logo_path": str(target),
            "logo_filename": filename,
        }))
        if previous and previous != str(target):
            self._unlink(previous)
        logger.info("Logo uploaded for %s (%d bytes)", profile.id, len(content))
        return profile

    def remove_logo(self) -> Profile:
        profile = self.get_profile()
        if profile.logo_path:
            self._unlink(profile.logo_path)
        return self.save_profile(profile.model_copy(update={"logo_path": None, "logo_filename": None}))

    @staticmethod
    def _unlink(path: str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove old logo %s: %s", path, e)
