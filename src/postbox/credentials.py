"""
Credentials Management
======================

Credential retrieval for the mailbox and SMTP connections. In production this
uses biosecret; tests mock subprocess.run.

INV-GLOBAL-04: Credentials retrieved on demand, held in memory only.
"""

import json
import subprocess
from dataclasses import dataclass, field

from contracts import (
    BiosecretDeniedError,
    BiosecretNotFoundError,
)


@dataclass(frozen=True)
class Credentials:
    """Mailbox and SMTP settings held in memory only."""

    username: str
    password: str = field(repr=False)
    server: str
    port: int = 993
    use_ssl: bool = True
    smtp_server: str = ""
    smtp_port: int = 465
    smtp_ssl: bool = True
    smtp_starttls: bool = False
    folder: str = "INBOX"
    timeout: float | None = 30.0


def retrieve_credentials(account_id: str) -> Credentials:
    """
    Retrieve credentials via biosecret CLI.

    PRE: biosecret CLI is available in PATH
    PRE: User has stored credentials under key "postbox/{account_id}"

    POST: Returns Credentials on success

    ERRORS:
    - BiosecretDeniedError: User cancelled biometric prompt
    - BiosecretNotFoundError: No credentials under expected key
    """
    try:
        result = subprocess.run(
            ["biosecret", "get", f"postbox/{account_id}"],
            capture_output=True,
            text=True,
            timeout=30,
        )

        if result.returncode != 0:
            stderr = result.stderr.lower() if result.stderr else ""
            if "cancel" in stderr or "denied" in stderr:
                raise BiosecretDeniedError("User cancelled biometric authentication")
            raise BiosecretNotFoundError(f"No credentials found for {account_id}")

        data = json.loads(result.stdout)
        server = data.get("server", "imap.gmail.com")
        return Credentials(
            username=data["username"],
            password=data["password"],
            server=server,
            port=data.get("port", 993),
            use_ssl=data.get("use_ssl", True),
            smtp_server=data.get("smtp_server", server.replace("imap.", "smtp.", 1)),
            smtp_port=data.get("smtp_port", 465),
            smtp_ssl=data.get("smtp_ssl", True),
            smtp_starttls=data.get("smtp_starttls", False),
            folder=data.get("folder", "INBOX"),
            timeout=data.get("timeout", 30.0),
        )
    except subprocess.TimeoutExpired as e:
        raise BiosecretDeniedError("Biometric authentication timed out") from e
    except (json.JSONDecodeError, KeyError) as e:
        raise BiosecretNotFoundError("Invalid credential format") from e
    except FileNotFoundError as e:
        raise BiosecretNotFoundError("biosecret CLI not found in PATH") from e
