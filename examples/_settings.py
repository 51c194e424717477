import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict


@dataclass(frozen=True)
class IremboPaySettings:
    secret_key: str
    environment: str = "sandbox"
    payment_account_identifier: str | None = None


def load_settings() -> IremboPaySettings:
    values = _load_env_values()
    secret_key = values.get("IREMBOPAY_SECRET_KEY")
    if not secret_key:
        raise RuntimeError("missing IREMBOPAY_SECRET_KEY in environment or .env")
    return IremboPaySettings(
        secret_key=secret_key,
        environment=values.get("IREMBOPAY_ENVIRONMENT") or "sandbox",
        payment_account_identifier=values.get("IREMBOPAY_PAYMENT_ACCOUNT"),
    )


def _load_env_values() -> Dict[str, str]:
    values: Dict[str, str] = dict(os.environ)
    for candidate in (Path.cwd() / ".env", Path(__file__).resolve().parent.parent / ".env"):
        if not candidate.exists():
            continue
        for line in candidate.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            values.setdefault(key.strip(), value.strip())
        break
    return values
