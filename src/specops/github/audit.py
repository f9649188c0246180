"""Specification-quality audit tasks: one issue per endpoint and aspect.

Pure data shaping, no I/O. An endpoints file lists ``METHOD /path`` lines;
every endpoint is crossed with every audit ``Aspect`` to produce an
``AuditTask`` whose title, body, labels and hidden identifier marker are
fully determined by the pair. The marker lets a later run find the same
issue again and update it instead of creating a duplicate.

Example:
    endpoints = parse_endpoints(Path("endpoints.txt").read_text())
    labels, tasks = build_tasks(endpoints)
    print(tasks[0].title)  # SpecCheck: GET /v3/apps - Path
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

#: Labels applied to every audit issue.
BASE_LABELS: tuple[str, ...] = ("OpenAPI", "Quality Check")


@dataclass(frozen=True)
class Aspect:
    """One facet of an endpoint's specification to review.

    Attributes:
        title: Short name, e.g. ``Request Schema``.
        body: One-sentence instruction.
        details: Markdown checklist.
    """

    title: str
    body: str
    details: str

    @property
    def slug(self) -> str:
        return self.title.lower().replace(" ", "-")


@dataclass(frozen=True)
class Endpoint:
    method: str
    path: str

    @property
    def name(self) -> str:
        return f"{self.method} {self.path}"


ASPECTS: tuple[Aspect, ...] = (
    Aspect(
        title="Path",
        body="Verify the endpoint path and its parameters.",
        details="""
- [ ] **Path Correctness**: Ensure the path is correct and follows RESTful conventions. For example, for a resource, the path should be plural (e.g., `/v3/apps`).
- [ ] **Path Templating**: Check that path parameters are correctly defined using curly braces (e.g., `/v3/apps/{guid}`).
- [ ] **Parameter Definition**: Verify that each path parameter is defined in the `parameters` section of the Path Item Object.
- [ ] **Character Encoding**: Ensure that path parameter values do not contain unescaped characters like `/`, `?`, or `#`.""",
    ),
    Aspect(
        title="Request Schema",
        body="Verify the request body schema.",
        details="""
- [ ] **Schema Validation**: Validate the request body schema against the actual implementation.
- [ ] **Data Types**: Check for correct data types (e.g., `string`, `number`, `boolean`, `array`, `object`).
- [ ] **Required Fields**: Ensure all required fields are marked as such in the schema.
- [ ] **Constraints**: Verify constraints like `minimum`, `maximum`, `minLength`, `maxLength`, and `pattern`.
- [ ] **Examples**: Ensure that examples provided in the schema are valid and helpful.""",
    ),
    Aspect(
        title="Request Parameters",
        body="Verify the request parameters for the endpoint.",
        details="""
- [ ] **Parameter Naming**: Check for consistent and descriptive parameter names.
- [ ] **Parameter Location**: Verify the parameter location (`in`: `query`, `header`, `path`, `cookie`).
- [ ] **Required Flag**: Ensure the `required` flag is set correctly for each parameter.
- [ ] **Schema Definition**: Verify that each parameter has a well-defined schema with the correct type and format.
- [ ] **Style and Explode**: Check the `style` and `explode` keywords for proper serialization of complex parameters.""",
    ),
    Aspect(
        title="Request Headers",
        body="Verify the request headers.",
        details="""
- [ ] **Standard Headers**: Check for the presence of standard headers like `Content-Type` and `Authorization`.
- [ ] **Custom Headers**: Verify that any custom headers are correctly defined and documented.
- [ ] **Case-Insensitivity**: Remember that header names are case-insensitive as per RFC7230.""",
    ),
    Aspect(
        title="Response Body",
        body="Verify the response body for all possible response codes.",
        details="""
- [ ] **Schema per Response Code**: Validate the schema for the body of each response code (e.g., `200`, `201`, `404`).
- [ ] **Data Types and Structures**: Check for correct data types and object structures in the response.
- [ ] **Examples**: Ensure that examples are accurate, helpful, and match the defined schema.
- [ ] **Links Object**: Verify that the `links` object provides correct and useful URLs to related resources.""",
    ),
    Aspect(
        title="Response Headers",
        body="Verify the response headers.",
        details="""
- [ ] **Standard Headers**: Check for standard response headers like `Content-Type`, `ETag`, and `Location`.
- [ ] **Custom Headers**: Verify that custom headers are correctly defined in the `headers` section of the Response Object.
- [ ] **Rate Limiting Headers**: If applicable, check for headers like `X-Rate-Limit-Limit`, `X-Rate-Limit-Remaining`, and `X-Rate-Limit-Reset`.""",
    ),
    Aspect(
        title="Response Codes",
        body="Verify the HTTP response status codes.",
        details="""
- [ ] **Success Codes**: Ensure all possible success codes are documented (e.g., `200 OK`, `201 Created`, `202 Accepted`, `204 No Content`).
- [ ] **Error Codes**: Ensure that appropriate error codes are used for client and server errors (`4xx` and `5xx` ranges).
- [ ] **Default Response**: Check if a `default` response is defined for unexpected errors.""",
    ),
    Aspect(
        title="Error Handling",
        body="Verify the error responses for the endpoint.",
        details="""
- [ ] **Error Response Schema**: Ensure a consistent error response body schema is used across all error responses.
- [ ] **Error Codes and Titles**: Verify that the error `code` and `title` are informative and consistent.
- [ ] **Error Details**: Check that the `detail` message provides a clear explanation of the error.""",
    ),
    Aspect(
        title="Summary and Description",
        body="Verify the summary and description for the operation.",
        details="""
- [ ] **Clarity and Accuracy**: Check for clarity, accuracy, and completeness in the summary and description.
- [ ] **Concise Summary**: Ensure the `summary` provides a short, easy-to-understand overview of the operation.
- [ ] **Detailed Description**: Verify the `description` provides enough detail, including any specific behaviors or constraints.
- [ ] **GithubMarkdown Syntax**: Ensure that GithubMarkdown syntax is used correctly for rich text representation.""",
    ),
    Aspect(
        title="Tags",
        body="Verify the tags associated with the operation.",
        details="""
- [ ] **Relevance**: Ensure tags are relevant to the operation and group it logically with other operations.
- [ ] **Consistency**: Check for consistent use of tags across the API.
- [ ] **Declaration**: Verify that tags used in operations are declared in the global `tags` section of the OpenAPI document.""",
    ),
    Aspect(
        title="Security",
        body="Verify the security requirements for the endpoint.",
        details="""
- [ ] **Security Scheme**: Verify that the correct security scheme is applied (e.g., `OAuth2`, `API Key`).
- [ ] **Scopes**: Ensure that the required OAuth2 scopes are correctly defined for the operation.
- [ ] **Permissions**: Cross-reference with the Cloud Foundry documentation to ensure the roles and permissions required for the endpoint are accurately reflected.""",
    ),
)


def parse_endpoints(text: str) -> list[Endpoint]:
    """Parse ``METHOD /path`` lines; blank and malformed lines are skipped.

    Example:
        >>> parse_endpoints("GET /v3/apps\\n\\nPOST /v3/apps\\njunk\\n")
        [Endpoint(method='GET', path='/v3/apps'), Endpoint(method='POST', path='/v3/apps')]
    """
    endpoints: list[Endpoint] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        endpoints.append(Endpoint(method=parts[0], path=parts[1]))
    return endpoints


def extract_resource_group(path: str) -> str:
    """Resource name used for the ``Resource:`` label.

    For ``/v3/...`` paths this is the segment after ``v3`` (or after
    ``admin`` for admin endpoints); otherwise the first segment.

    Example:
        >>> extract_resource_group("/v3/apps/{guid}/env?x=1")
        'apps'
        >>> extract_resource_group("/v3/admin/actions/clear_buildpack_cache")
        'actions'
        >>> extract_resource_group("/")
        'unknown'
    """
    parts = [part for part in path.split("?")[0].split("/") if part]
    if len(parts) > 1 and parts[0] == "v3":
        resource = parts[1]
        if resource == "admin" and len(parts) > 2:
            resource = parts[2]
        return resource or "unknown"
    return parts[0] if parts else "unknown"


@dataclass(frozen=True)
class AuditTask:
    """The issue that tracks one aspect of one endpoint."""

    endpoint: Endpoint
    aspect: Aspect

    @property
    def name(self) -> str:
        return f"{self.endpoint.name} - {self.aspect.title}"

    @property
    def marker(self) -> str:
        """Hidden HTML comment embedded in the body to find the issue again."""
        return f"<!-- ID: {self.endpoint.name}-{self.aspect.slug} -->"

    @property
    def title(self) -> str:
        return f"SpecCheck: {self.name}"

    @property
    def resource_group(self) -> str:
        return extract_resource_group(self.endpoint.path)

    @property
    def labels(self) -> tuple[str, ...]:
        return (
            *BASE_LABELS,
            f"Method: {self.endpoint.method}",
            f"Aspect: {self.aspect.title}",
            f"Resource: {self.resource_group}",
        )

    @property
    def body(self) -> str:
        return (
            "Check and validate the correctness of the openapi specification "
            f"for `{self.endpoint.name}`\n\n"
            f"**Aspect:** {self.aspect.body}\n\n"
            f"**Details:**\n{self.aspect.details}\n\n"
            f"{self.marker}"
        )


def build_tasks(
    endpoints: Iterable[Endpoint],
    aspects: Sequence[Aspect] = ASPECTS,
) -> tuple[list[str], list[AuditTask]]:
    """Cross endpoints with aspects.

    Returns:
        (labels, tasks): every label any task needs, deduplicated in
        first-seen order, and the tasks in endpoint-major order.
    """
    labels: dict[str, None] = {}
    tasks: list[AuditTask] = []
    for endpoint in endpoints:
        for aspect in aspects:
            task = AuditTask(endpoint=endpoint, aspect=aspect)
            labels.update(dict.fromkeys(task.labels))
            tasks.append(task)
    return list(labels), tasks


def diff_labels(
    current: Sequence[str], desired: Sequence[str]
) -> tuple[list[str], list[str]]:
    """Labels to add and to remove to turn ``current`` into ``desired``.

    Example:
        >>> diff_labels(["OpenAPI", "stale"], ["OpenAPI", "Tags"])
        (['Tags'], ['stale'])
    """
    to_add = [label for label in desired if label not in current]
    to_remove = [label for label in current if label not in desired]
    return to_add, to_remove


def random_label_color(rng: random.Random | None = None) -> str:
    """Random six-digit hex colour, without the leading ``#``."""
    value = (rng or random).randint(0, 0xFFFFFF)  # nosec B311 - not security related
    return f"{value:06x}"
