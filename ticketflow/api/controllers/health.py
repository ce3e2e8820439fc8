"""Health check for the issue tracker connection."""
from litestar import Response, get
from litestar.status_codes import HTTP_200_OK, HTTP_503_SERVICE_UNAVAILABLE

from ticketflow.clients.jira import JiraClient


@get("/health", sync_to_thread=True)
def health(jira: JiraClient) -> Response:
    try:
        healthy = jira.test_connection()
        message = "Successfully connected to Jira" if healthy else "Unable to connect to Jira"
    except Exception as e:
        healthy = False
        message = f"Jira connection failed: {e}"

    return Response(
        {"healthy": healthy, "message": message},
        status_code=HTTP_200_OK if healthy else HTTP_503_SERVICE_UNAVAILABLE,
    )
