from typing import Optional

from src.storage.credentials import CredentialStore
from src.tools.dispatcher import ToolDispatcher
from src.tools.gmail import ExternalServiceProxy, GmailToolFamily, HttpServiceProxy
from src.tools.simulated import SIMULATED_HANDLERS


def create_default_dispatcher(
    credentials: CredentialStore,
    proxy: Optional[ExternalServiceProxy] = None,
    proxy_url: str = "http://localhost:8010/api/gmail/proxy",
) -> ToolDispatcher:
    """Dispatcher with the Gmail family and the demo scenario handlers registered."""
    return ToolDispatcher(
        families=[GmailToolFamily(credentials, proxy or HttpServiceProxy(proxy_url))],
        handlers=SIMULATED_HANDLERS,
    )
