from __future__ import annotations

import json
from pathlib import Path

from mail2line.exceptions import MailboxError

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


class GmailAuthManager:
    def __init__(self, client_secret_path: Path, token_path: Path):
        self.client_secret_path = client_secret_path
        self.token_path = token_path

    def _load_client_config(self) -> dict:
        if not self.client_secret_path.exists():
            raise MailboxError(f"Gmail OAuth client secret not found: {self.client_secret_path}")
        try:
            with self.client_secret_path.open("r", encoding="utf-8-sig") as fh:
                return json.load(fh)
        except json.JSONDecodeError as exc:
            raise MailboxError(f"Invalid OAuth client secret JSON: {self.client_secret_path}") from exc

    def ensure_credentials(self, interactive: bool = False):
        """Return valid credentials, refreshing the stored token when possible.

        Scheduled runs pass ``interactive=False`` and fail instead of opening a
        browser consent flow; ``mail2line auth`` runs it interactively.
        """
        from google.auth.exceptions import RefreshError
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow

        creds = None
        if self.token_path.exists():
            try:
                creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
            except ValueError:
                creds = None

        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as exc:
                if not interactive:
                    raise MailboxError(f"Gmail token refresh failed: {exc}") from exc
                creds = None

        if not creds or not creds.valid:
            if not interactive:
                raise MailboxError(f"No valid Gmail token at {self.token_path}; run `mail2line auth` first")
            flow = InstalledAppFlow.from_client_config(self._load_client_config(), SCOPES)
            creds = flow.run_local_server(port=0)

        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(creds.to_json(), encoding="utf-8")
        return creds
