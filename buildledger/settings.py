from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from buildledger.ledger.payments import PaymentPolicy

ROOT_DIR = Path(__file__).resolve().parents[1]
PACKAGE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def default_data_dir() -> Path:
    env = os.environ.get("BUILDLEDGER_DATA_DIR")
    return Path(env) if env else ROOT_DIR / "data"


# ---------- Utils JSON ----------
def load_json(path: Union[os.PathLike, str]) -> Any:
    p = Path(path)
    if not p.exists():
        return None
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Unreadable JSON file %s (%s)", p, e)
        return None


def dump_json(path: Union[os.PathLike, str], data: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


# ---------- Sections ----------
class PdfSettings(BaseModel):
    wkhtmltopdf_path: Optional[str] = None
    page_size: str = "Letter"


class EmailSettings(BaseModel):
    from_address: Optional[str] = None
    from_name: str = "BuildLedger"
    aws_region: str = "us-east-1"
    configuration_set: Optional[str] = None


class PaymentSettings(BaseModel):
    allow_overpayment: bool = True
    auto_mark_paid: bool = False

    def policy(self) -> PaymentPolicy:
        return PaymentPolicy(allow_overpayment=self.allow_overpayment, auto_mark_paid=self.auto_mark_paid)


class LoggingSettings(BaseModel):
    level: str = "INFO"


class AppSettings(BaseModel):
    data_dir: Path = Field(default_factory=default_data_dir)
    pdf: PdfSettings = Field(default_factory=PdfSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    user_id: Optional[str] = None

    model_config = {"extra": "ignore"}

    @property
    def settings_file(self) -> Path:
        return self.data_dir / "settings.json"

    def save(self) -> None:
        payload = self.model_dump(mode="json", exclude={"data_dir"})
        dump_json(self.settings_file, payload)


def _apply_env(raw: Dict[str, Any]) -> Dict[str, Any]:
    pdf = raw.setdefault("pdf", {})
    for key in ("WKHTMLTOPDF", "WKHTMLTOPDF_PATH"):
        if os.environ.get(key):
            pdf["wkhtmltopdf_path"] = os.environ[key]
            break
    email = raw.setdefault("email", {})
    if os.environ.get("EMAIL_FROM_ADDRESS"):
        email["from_address"] = os.environ["EMAIL_FROM_ADDRESS"]
    if os.environ.get("AWS_REGION"):
        email["aws_region"] = os.environ["AWS_REGION"]
    if os.environ.get("BUILDLEDGER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = os.environ["BUILDLEDGER_LOG_LEVEL"]
    if os.environ.get("BUILDLEDGER_USER_ID"):
        raw["user_id"] = os.environ["BUILDLEDGER_USER_ID"]
    return raw


def load_settings(data_dir: Optional[Union[str, Path]] = None) -> AppSettings:
    """settings.json from the data dir, overridden by environment variables."""
    base = Path(data_dir) if data_dir else default_data_dir()
    raw = load_json(base / "settings.json")
    if not isinstance(raw, dict):
        raw = {}
    raw = _apply_env(raw)
    raw["data_dir"] = base
    try:
        return AppSettings.model_validate(raw)
    except ValidationError as e:
        logger.warning("Invalid settings.json, using defaults (%s)", e)
        return AppSettings.model_validate(_apply_env({"data_dir": base}))


def configure_logging(level: Optional[str] = None) -> None:
    name = (level or os.environ.get("BUILDLEDGER_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
