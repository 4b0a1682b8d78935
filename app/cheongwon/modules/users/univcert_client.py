from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class UnivCertError(RuntimeError):
    pass


@dataclass(frozen=True)
class UnivCertClient:
    """
    Institutional email certification API (univcert.com).

    Every call POSTs a JSON body carrying the API key and returns the decoded JSON object.
    The API answers "not certified" / "wrong code" with an HTTP error whose JSON body has
    success=false; those bodies are returned, not raised. No retries.
    """

    api_key: str
    base_url: str = "https://univcert.com/api/v1"
    timeout_seconds: int = 10

    def post_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = self.base_url.rstrip("/") + path
        data = json.dumps({"key": self.api_key, **body}).encode("utf-8")
        req = urllib.request.Request(url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                return _decode(resp.read(), path)
        except urllib.error.HTTPError as e:
            try:
                raw = e.read()
            except Exception:
                raw = b""
            try:
                j = json.loads(raw.decode("utf-8"))
            except ValueError:
                j = None
            if isinstance(j, dict) and "success" in j:
                logger.info("UnivCert %s answered HTTP %s: %s", path, e.code, j.get("message"))
                return j
            raise UnivCertError(f"HTTP {e.code} from UnivCert ({path}): {raw[:300]!r}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise UnivCertError(f"UnivCert request failed ({path}): {e}") from e

    def status(self, email: str) -> dict[str, Any]:
        """Has this email completed certification?"""
        return self.post_json("/status", {"email": email})

    def certify(self, email: str, univ_name: str, univ_check: bool = True) -> dict[str, Any]:
        """Send a certification code to the email."""
        return self.post_json("/certify", {"email": email, "univName": univ_name, "univ_check": univ_check})

    def certify_code(self, email: str, univ_name: str, code: int) -> dict[str, Any]:
        """Confirm the code the user received."""
        return self.post_json("/certifycode", {"email": email, "univName": univ_name, "code": code})


def _decode(raw: bytes, path: str) -> dict[str, Any]:
    try:
        j = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise UnivCertError(f"Invalid JSON from UnivCert ({path})") from e
    if not isinstance(j, dict):
        raise UnivCertError(f"Unexpected response from UnivCert ({path})")
    return j


def univcert_from_config(config: dict) -> UnivCertClient:
    return UnivCertClient(
        api_key=(config.get("UNIVCERT_API_KEY") or "").strip(),
        base_url=(config.get("UNIVCERT_BASE_URL") or "https://univcert.com/api/v1").strip(),
    )
