# ticketflow/validation.py
import logging

from ticketflow.clients.jira import JiraClient
from ticketflow.common.exceptions import IssueTrackerError, StartupValidationError
from ticketflow.config import Settings

logger = logging.getLogger(__name__)


class StartupValidator:
    """
    Checks that the issue tracker is usable before the scheduler starts.

    Connectivity and the configured project are hard requirements. The sample
    issue lookup only warns, since a fresh project may not have that issue yet.
    """

    def __init__(
        self,
        jira: JiraClient,
        settings: Settings,
        validate_sample_issue: bool = True,
    ):
        self.jira = jira
        self.jira_settings = settings.jira
        self.validate_sample_issue = validate_sample_issue

    def validate(self) -> None:
        logger.info("Running startup validation...")
        self._validate_connection()
        self._validate_project()
        if self.validate_sample_issue:
            self._validate_sample_issue()
        logger.info("Startup validation completed successfully")

    def _validate_connection(self) -> None:
        logger.info("Validating Jira connection to: %s", self.jira_settings.base_url)
        if not self.jira.test_connection():
            raise StartupValidationError(
                f"Failed to connect to Jira server at: {self.jira_settings.base_url}. "
                "Please check the URL and credentials."
            )
        logger.info("Jira connection successful")

    def _validate_project(self) -> None:
        project_key = self.jira_settings.base_project
        logger.info("Validating project exists: %s", project_key)
        try:
            project = self.jira.get_project(project_key)
        except IssueTrackerError as e:
            raise StartupValidationError(
                f"Project '{project_key}' not found or not accessible. "
                f"Please check the base_project configuration. Error: {e}"
            ) from e
        logger.info("Project '%s' exists: %s", project_key, project.get("name"))

    def _validate_sample_issue(self) -> None:
        issue_key = f"{self.jira_settings.base_project}-{self.jira_settings.sample_issue_number}"
        logger.info("Validating sample issue exists: %s", issue_key)
        try:
            issue = self.jira.get_issue(issue_key)
        except IssueTrackerError as e:
            logger.warning(
                "Sample issue '%s' not found. This is not critical, but you may want to "
                "verify the project has issues. Error: %s",
                issue_key,
                e,
            )
            return
        logger.info("Sample issue '%s' exists: %s", issue_key, issue.summary)


def run_startup_validation(jira: JiraClient, settings: Settings) -> None:
    """Run the validator when enabled. Failures are fatal only in production."""
    if not settings.jira.validate_on_startup:
        logger.info(
            "Startup validation is disabled. Enable with TICKETFLOW_VALIDATE_ON_STARTUP=true"
        )
        return

    logger.info("Startup validation is enabled")
    try:
        StartupValidator(jira, settings).validate()
    except StartupValidationError as e:
        logger.error("Startup validation failed: %s", e)
        if settings.is_production:
            raise
        logger.warning("Continuing despite validation failure (non-production mode)")
