"""
MS Graph client for outgoing mail, created on first use.
"""

from azure.identity import ClientSecretCredential
from msgraph import GraphServiceClient

from core import config

_graph_client: GraphServiceClient | None = None


def get_graph_client() -> GraphServiceClient:
    """
    Get or create the MS Graph client.

    Raises:
        ValueError: If the Graph credentials are not configured
    """
    global _graph_client
    if _graph_client is None:
        if not (config.GRAPH_TENANT_ID and config.GRAPH_APP_ID and config.GRAPH_CLIENT_SECRET):
            raise ValueError("MS Graph credentials are not configured")
        credential = ClientSecretCredential(
            tenant_id=config.GRAPH_TENANT_ID,
            client_id=config.GRAPH_APP_ID,
            client_secret=config.GRAPH_CLIENT_SECRET,
        )
        _graph_client = GraphServiceClient(
            credentials=credential,
            scopes=["https://graph.microsoft.com/.default"],
        )
    return _graph_client
