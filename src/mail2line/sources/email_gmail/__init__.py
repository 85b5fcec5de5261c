from .auth import SCOPES, GmailAuthManager
from .source import GmailMailbox

__all__ = ["SCOPES", "GmailAuthManager", "GmailMailbox"]
