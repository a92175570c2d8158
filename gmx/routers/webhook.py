from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
import logging

from ..core.config import settings
from ..core.commands import apply_commands
from ..core.maintenance_state import MaintenanceState
from ..core.metrics import error_count
from ..core.security import (
    SIGNATURE_256_HEADER,
    SIGNATURE_HEADER,
    WebhookValidationError,
    validate_payload,
)
from ..dependencies import get_state, get_github_secret
from .. import schemas

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])

EVENT_HEADER = "X-GitHub-Event"
REQUIRED_EVENTS = {"issues", "issue_comment"}

# event names GitHub can deliver; anything else is a malformed delivery
GITHUB_EVENTS = frozenset({
    "branch_protection_rule", "check_run", "check_suite", "code_scanning_alert",
    "commit_comment", "create", "delete", "dependabot_alert", "deploy_key",
    "deployment", "deployment_status", "discussion", "discussion_comment", "fork",
    "github_app_authorization", "gollum", "installation", "installation_repositories",
    "issue_comment", "issues", "label", "marketplace_purchase", "member", "membership",
    "merge_group", "meta", "milestone", "organization", "org_block", "package",
    "page_build", "ping", "project", "project_card", "project_column", "public",
    "pull_request", "pull_request_review", "pull_request_review_comment",
    "pull_request_review_thread", "push", "registry_package", "release",
    "repository", "repository_dispatch", "repository_vulnerability_alert",
    "secret_scanning_alert", "security_advisory", "sponsorship", "star", "status",
    "team", "team_add", "watch", "workflow_dispatch", "workflow_job", "workflow_run",
})


def _handle_issues(state: MaintenanceState, payload: bytes, project: str):
    event = schemas.IssuesEvent.model_validate_json(payload)
    issue = str(event.issue.number)
    logger.info(f"Webhook is an Issues event for issue #{issue}")

    if event.action in ("closed", "deleted"):
        logger.info(f"Issue #{issue} was {event.action}")
        return state.close_issue(issue), status.HTTP_200_OK
    if event.action in ("opened", "edited"):
        return apply_commands(state, event.issue.body, issue, project), status.HTTP_200_OK

    logger.info(f"Unsupported Issues event action: {event.action}")
    return 0, status.HTTP_501_NOT_IMPLEMENTED


def _handle_issue_comment(state: MaintenanceState, payload: bytes, project: str):
    event = schemas.IssueCommentEvent.model_validate_json(payload)
    issue = str(event.issue.number)
    logger.info(f"Webhook is an IssueComment event for issue #{issue}")

    if event.issue.state != "open":
        logger.info(f"Ignoring IssueComment event on closed issue #{issue}")
        return 0, status.HTTP_417_EXPECTATION_FAILED
    return apply_commands(state, event.comment.body, issue, project), status.HTTP_200_OK


def _handle_ping(state: MaintenanceState, payload: bytes, project: str):
    event = schemas.PingEvent.model_validate_json(payload)
    logger.info("Webhook is a Ping event")

    if not REQUIRED_EVENTS.issubset(event.hook.events):
        logger.error("Registered webhook events do not include both 'issues' and 'issue_comment'")
        return 0, status.HTTP_417_EXPECTATION_FAILED
    return 0, status.HTTP_200_OK


EVENT_HANDLERS = {
    "issues": _handle_issues,
    "issue_comment": _handle_issue_comment,
    "ping": _handle_ping,
}


def process_event(state: MaintenanceState, event_type: str, payload: bytes, project: str) -> int:
    """dispatch a verified webhook payload and return the HTTP status to answer with"""
    if event_type not in GITHUB_EVENTS:
        logger.error(f"Unknown webhook event type: {event_type!r}")
        error_count.labels("parsehook", "receive_hook").inc()
        return status.HTTP_400_BAD_REQUEST

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.warning(f"Received unimplemented webhook event type: {event_type}")
        return status.HTTP_501_NOT_IMPLEMENTED

    try:
        mods, status_code = handler(state, payload, project)
    except ValidationError as e:
        logger.error(f"Failed to parse {event_type} webhook: {e}")
        error_count.labels("parsehook", "receive_hook").inc()
        return status.HTTP_400_BAD_REQUEST

    # only write state to file if the current state was modified
    if mods > 0 and not state.write():
        error_count.labels("writefile", "receive_hook").inc()
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status_code


@router.post("/webhook")
async def receive_hook(
    request: Request,
    state: MaintenanceState = Depends(get_state),
    secret: bytes = Depends(get_github_secret),
):
    logger.info("Received a webhook")
    body = await request.body()

    try:
        payload = validate_payload(
            secret,
            body,
            request.headers.get("content-type"),
            signature_256=request.headers.get(SIGNATURE_256_HEADER),
            signature=request.headers.get(SIGNATURE_HEADER),
        )
    except WebhookValidationError as e:
        logger.error(f"Validation of webhook failed: {e}")
        error_count.labels("validatehook", "receive_hook").inc()
        return Response(status_code=status.HTTP_401_UNAUTHORIZED)

    event_type = request.headers.get(EVENT_HEADER, "")
    status_code = await run_in_threadpool(process_event, state, event_type, payload, settings.PROJECT)
    return Response(status_code=status_code)
