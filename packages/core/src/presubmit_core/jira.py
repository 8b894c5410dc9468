"""Keeping Jira tickets in step with pull requests.

``JiraClient`` is a thin wrapper around the Jira REST v2 API. The module
functions implement the ticket policy on top of it. Tracker problems never
stop a review: every policy function logs a warning and reports "nothing
found" instead of raising.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

import requests

logger = logging.getLogger(__name__)

TICKET_KEY_RE = re.compile(r"([A-Z]+-\d+)")
BRACKETED_TICKET_RE = re.compile(r"\[([A-Z]+-\d+)\]")

EPIC_LINK_FIELD = "customfield_10014"
SHIPPED_STATE = "Shipped"
IN_REVIEW_STATE = "In Review"
EPIC_MATCH_THRESHOLD = 0.3

_TIMEOUT = 30


class JiraClient:
    def __init__(self, host: str, username: str, api_token: str, projects: list[str] | None = None):
        self.host = host.rstrip("/")
        self.projects = projects or []
        self.session = requests.Session()
        self.session.auth = (username, api_token)
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})

    @classmethod
    def from_config(cls, config: dict) -> JiraClient:
        return cls(
            host=config["jira_host"],
            username=config["jira_username"],
            api_token=config["jira_api_token"],
            projects=config.get("jira_projects") or [],
        )

    def _request(self, method: str, path: str, **kwargs):
        resp = self.session.request(method, f"{self.host}/rest/api/2/{path}", timeout=_TIMEOUT, **kwargs)
        resp.raise_for_status()
        return resp.json() if resp.content else None

    def browse_url(self, key: str) -> str:
        return f"{self.host}/browse/{key}"

    def get_ticket(self, key: str) -> dict:
        return self._request("GET", f"issue/{key}")

    def search(self, jql: str) -> list[dict]:
        data = self._request("GET", "search", params={"jql": jql})
        return (data or {}).get("issues", [])

    def create_ticket(self, project: str, summary: str, description: str, issue_type: str = "Task") -> str:
        fields = {
            "project": {"key": project},
            "summary": summary,
            "description": description,
            "issuetype": {"name": issue_type},
        }
        return self._request("POST", "issue", json={"fields": fields})["key"]

    def get_transitions(self, key: str) -> list[dict]:
        return (self._request("GET", f"issue/{key}/transitions") or {}).get("transitions", [])

    def transition(self, key: str, transition_id: str) -> None:
        self._request("POST", f"issue/{key}/transitions", json={"transition": {"id": transition_id}})

    def set_epic_link(self, key: str, epic_key: str) -> None:
        self._request("PUT", f"issue/{key}", json={"fields": {EPIC_LINK_FIELD: epic_key}})

    def find_users(self, query: str) -> list[dict]:
        return self._request("GET", "user/search", params={"query": query}) or []

    def assign(self, key: str, account_id: str) -> None:
        self._request("PUT", f"issue/{key}/assignee", json={"accountId": account_id})

    def project_clause(self) -> str:
        return f"project in ({', '.join(self.projects)}) AND " if self.projects else ""


def extract_ticket_keys(text: str) -> list[str]:
    """Distinct ticket keys in ``text``, in order of appearance."""
    return list(dict.fromkeys(TICKET_KEY_RE.findall(text or "")))


def extract_bracketed_keys(text: str) -> list[str]:
    return list(dict.fromkeys(BRACKETED_TICKET_RE.findall(text or "")))


def _fetch(client: JiraClient, key: str) -> dict | None:
    try:
        return client.get_ticket(key)
    except requests.RequestException as e:
        logger.warning("Error fetching Jira ticket %s: %s", key, e)
        return None


def get_ticket_type(client: JiraClient, key: str) -> str | None:
    ticket = _fetch(client, key)
    if not ticket:
        return None
    return ((ticket.get("fields") or {}).get("issuetype") or {}).get("name")


def is_epic(client: JiraClient, key: str) -> bool:
    return get_ticket_type(client, key) == "Epic"


def associate_ticket_with_epic(client: JiraClient, key: str, epic_key: str) -> bool:
    try:
        client.set_epic_link(key, epic_key)
    except requests.RequestException as e:
        logger.warning("Error associating %s with Epic %s: %s", key, epic_key, e)
        return False
    logger.info("Associated ticket %s with Epic %s", key, epic_key)
    return True


def find_ticket_from_branch(client: JiraClient, branch_name: str) -> str | None:
    """First existing ticket named in the branch.

    When the branch names several tickets and one of them is an Epic, the
    returned ticket is linked to it.
    """
    keys = extract_ticket_keys(branch_name)
    for key in keys:
        if not _fetch(client, key):
            continue
        logger.info("Found Jira ticket %s from branch name", key)
        for other in keys:
            if other != key and is_epic(client, other):
                associate_ticket_with_epic(client, key, other)
        return key
    return None


def find_tickets_in_commit_messages(client: JiraClient, commit_messages: list[str]) -> list[str]:
    """Ticket keys mentioned in commit messages that exist in Jira."""
    keys = extract_ticket_keys("\n".join(commit_messages))
    found = []
    for key in keys:
        if _fetch(client, key):
            logger.info("Found Jira ticket %s in commit messages", key)
            found.append(key)
    return found


def search_related_tickets(client: JiraClient, title: str) -> str | None:
    """An open ticket whose text matches the pull request title."""
    escaped = title.replace("\\", "\\\\").replace('"', '\\"')
    jql = f'{client.project_clause()}status in ("Open", "In Progress") AND text ~ "{escaped}"'
    try:
        issues = client.search(jql)
    except requests.RequestException as e:
        logger.warning("Error searching Jira tickets: %s", e)
        return None
    if not issues:
        return None
    logger.info("Found related Jira ticket %s", issues[0]["key"])
    return issues[0]["key"]


def relevance_score(epic_text: str, ticket_text: str) -> float:
    """Share of meaningful ticket words that also appear in the Epic text."""
    epic_words = set(epic_text.lower().split())
    ticket_words = ticket_text.lower().split()
    if not epic_words and not ticket_words:
        return 0.0
    matches = sum(1 for word in ticket_words if len(word) > 3 and word in epic_words)
    return matches / max(len(epic_words), len(ticket_words))


def find_epic_by_semantic_match(client: JiraClient, summary: str, description: str) -> str | None:
    jql = f"{client.project_clause()}issuetype = Epic AND status != Closed"
    try:
        epics = client.search(jql)
    except requests.RequestException as e:
        logger.warning("Error searching for Epics: %s", e)
        return None

    best_key, best_score = None, 0.0
    for epic in epics:
        fields = epic.get("fields") or {}
        score = relevance_score(
            f"{fields.get('summary', '')} {fields.get('description') or ''}",
            f"{summary} {description}",
        )
        if best_key is None or score > best_score:
            best_key, best_score = epic["key"], score
    if best_key and best_score > EPIC_MATCH_THRESHOLD:
        logger.info("Found matching Epic %s with score %.2f", best_key, best_score)
        return best_key
    return None


def find_user(client: JiraClient, github_login: str, email: str | None = None, user_map: dict | None = None):
    """Jira account id for a GitHub user: mapped email, then login, then commit email."""
    queries = [q for q in ((user_map or {}).get(github_login), github_login, email) if q]
    for query in dict.fromkeys(queries):
        try:
            users = client.find_users(query)
        except requests.RequestException as e:
            logger.warning("Error searching Jira users for %s: %s", query, e)
            continue
        if users:
            logger.info("Found Jira user for %s via %s", github_login, query)
            return users[0].get("accountId")
    logger.warning("No matching Jira user found for GitHub user %s", github_login)
    return None


def transition_ticket(client: JiraClient, key: str, target_state: str) -> bool:
    """Move a ticket to ``target_state`` if a matching transition exists."""
    try:
        transitions = client.get_transitions(key)
        match = next((t for t in transitions if t.get("name", "").lower() == target_state.lower()), None)
        if match is None:
            logger.warning('No transition found to state "%s" for ticket %s', target_state, key)
            return False
        client.transition(key, match["id"])
    except requests.RequestException as e:
        logger.warning("Failed to transition ticket %s: %s", key, e)
        return False
    return True


def _ticket_description(description: str, pr: dict) -> str:
    files = pr.get("files") or []
    commit_messages = pr.get("commit_messages") or []
    lines = ["h2. Overview", description, "", "h2. Implementation Details"]
    if pr.get("url"):
        lines.append(f"* Pull Request: {pr['url']}")
    if pr.get("branch"):
        lines.append(f"* Implementation Branch: {pr['branch']}")

    components: dict[str, int] = {}
    for filename in files:
        parts = filename.split("/")
        component = parts[-2] if len(parts) > 1 else "other"
        components[component] = components.get(component, 0) + 1
    if components:
        lines += ["", "h2. Components Modified"]
        for component, count in components.items():
            lines += [f"h3. {component.capitalize()}", f"* Number of files modified: {count}"]

    subjects = [m.strip().splitlines()[0] for m in commit_messages if m.strip()]
    features = [s.split(":", 1)[1].strip() for s in subjects if re.match(r"^feat(ure)?:", s, re.IGNORECASE)]
    notes = [
        re.sub(r"^(fix|chore|refactor|style|test|docs):\s*", "", s, flags=re.IGNORECASE)
        for s in subjects
        if not re.match(r"^feat(ure)?:", s, re.IGNORECASE)
    ]
    if subjects:
        lines += ["", "h2. Feature Implementation"]
        if features:
            lines.append("h3. Features Added/Modified")
            lines += [f"* {f}" for f in dict.fromkeys(features)]
        lines.append("h3. Implementation Notes")
        lines += [f"* {n[:1].upper()}{n[1:]}" for n in notes]

    tests = [f for f in files if "test" in f or "spec" in f]
    configs = [f for f in files if "config" in f or f.endswith((".json", ".yml", ".yaml"))]
    lines += ["", "h2. Technical Impact"]
    if tests:
        lines.append(f"* Test Coverage: Added/modified {len(tests)} test files")
    if configs:
        lines.append(f"* Configuration Changes: Updated {len(configs)} configuration files")

    lines += ["", "h2. Metadata", "* Created by: presubmit.ai"]
    if pr.get("author"):
        lines.append(f"* Implementation Author: {pr['author']}")
    lines.append(f"* Created on: {datetime.now(timezone.utc).date().isoformat()}")
    return "\n".join(lines)


def create_ticket_for_pull_request(
    client: JiraClient,
    project: str,
    title: str,
    description: str,
    pr: dict,
    user_map: dict | None = None,
) -> str | None:
    """Create a Task describing the pull request.

    ``pr`` carries ``url``, ``branch``, ``author``, ``author_email``,
    ``files`` (filenames) and ``commit_messages``. The new ticket is assigned
    to the author, linked to the best matching Epic and moved to In Review
    when possible.
    """
    try:
        key = client.create_ticket(project, title, _ticket_description(description, pr))
    except requests.RequestException as e:
        logger.warning("Error creating Jira ticket: %s", e)
        return None

    if pr.get("author"):
        account_id = find_user(client, pr["author"], pr.get("author_email"), user_map)
        if account_id:
            try:
                client.assign(key, account_id)
            except requests.RequestException as e:
                logger.warning("Error assigning ticket %s: %s", key, e)

    epic_key = find_epic_by_semantic_match(client, title, description)
    if epic_key:
        associate_ticket_with_epic(client, key, epic_key)

    transition_ticket(client, key, IN_REVIEW_STATE)
    logger.info("Created new Jira ticket %s", key)
    return key


def update_ticket_state(client: JiraClient, key: str, merged: bool) -> bool:
    """Ship a ticket once its pull request is merged. Epics are never shipped."""
    if not merged:
        logger.info("PR was closed but not merged, not updating Jira ticket %s", key)
        return False

    ticket = _fetch(client, key)
    if not ticket:
        return False
    fields = ticket.get("fields") or {}
    ticket_type = (fields.get("issuetype") or {}).get("name")
    if ticket_type == "Epic":
        logger.info("Not closing Epic ticket %s", key)
        return False
    status = ((fields.get("status") or {}).get("name") or "").lower()
    if status == SHIPPED_STATE.lower():
        logger.info("Ticket %s is already in %s state", key, SHIPPED_STATE)
        return False

    logger.info("Transitioning %s ticket %s to %s", ticket_type or "unknown", key, SHIPPED_STATE)
    return transition_ticket(client, key, SHIPPED_STATE)


def discover_tickets(
    client: JiraClient,
    branch: str,
    commit_messages: list[str],
    title: str,
    description: str,
    default_project: str | None = None,
    pr: dict | None = None,
    user_map: dict | None = None,
) -> tuple[list[str], dict[str, str]]:
    """Tickets for a newly opened pull request and their issue types.

    Looks at the branch name, then commit messages, then a text search,
    and finally creates a ticket in ``default_project``. The first ticket
    found is the primary one; when none of them is an Epic, the others are
    linked to the primary.
    """
    tickets: list[str] = []
    branch_ticket = find_ticket_from_branch(client, branch) if branch else None
    if branch_ticket:
        tickets.append(branch_ticket)
    for key in find_tickets_in_commit_messages(client, commit_messages):
        if key not in tickets:
            tickets.append(key)
    if not tickets:
        related = search_related_tickets(client, title)
        if related:
            tickets.append(related)
    if not tickets and default_project:
        created = create_ticket_for_pull_request(client, default_project, title, description, pr or {}, user_map)
        if created:
            tickets.append(created)

    types = {}
    for key in tickets:
        ticket_type = get_ticket_type(client, key)
        if ticket_type:
            types[key] = ticket_type

    if tickets and "Epic" not in types.values():
        primary = tickets[0]
        for key in tickets[1:]:
            associate_ticket_with_epic(client, key, primary)
    return tickets, types


def format_ticket_references(client: JiraClient, tickets: list[str], types: dict[str, str]) -> str:
    """Markdown section listing tickets grouped by issue type."""
    if not tickets:
        return ""
    by_type: dict[str, list[str]] = {}
    for key in tickets:
        by_type.setdefault(types.get(key, "Task"), []).append(key)
    lines = ["## JIRA References", ""]
    for ticket_type, keys in by_type.items():
        lines.append(f"### {ticket_type}s")
        lines += [f"- [{key}]({client.browse_url(key)})" for key in keys]
        lines.append("")
    return "\n".join(lines)


def sync_tickets_on_close(client: JiraClient, pr_body: str, commit_messages: list[str], merged: bool) -> list[str]:
    """Update every ticket referenced by a closed pull request.

    Tickets come from ``[KEY-123]`` references in the description and from
    commit messages.
    """
    tickets = extract_bracketed_keys(pr_body)
    for key in find_tickets_in_commit_messages(client, commit_messages):
        if key not in tickets:
            tickets.append(key)
    if not tickets:
        logger.warning("No Jira ticket keys found in PR description or commit messages")
        return []
    logger.info("Processing %d Jira tickets: %s", len(tickets), ", ".join(tickets))
    for key in tickets:
        update_ticket_state(client, key, merged)
    return tickets
