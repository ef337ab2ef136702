"""Default AppSpec to prompt compiler.

Deterministic: the same AppSpec always yields the same prompt, with no
timestamps or environment-dependent values. The product's full compiler can
be injected in its place.
"""

from typing import Any

from deployer.models.app import AppSpec

PROMPT_FOOTER = """Constraints:
- Use the Next.js App Router with TypeScript and Tailwind CSS
- Read the API base URL from NEXT_PUBLIC_API_URL; never hardcode it
- Scope every data query by orgId
- Do not import external UI or form libraries"""


def _describe_page(page: dict[str, Any]) -> list[str]:
    route = page.get("route", "/")
    lines = [f"- {page.get('title') or page.get('id', route)} ({page.get('type', 'page')}) at {route}"]
    if page.get("role"):
        lines.append(f"    Role: {page['role']}")
    for field in page.get("fields") or []:
        required = " (required)" if field.get("required") else ""
        lines.append(f"    Field {field.get('id')}: {field.get('type', 'text')}{required}")
    return lines


def compile_prompt(spec: AppSpec) -> str:
    """Render an AppSpec as a code generation prompt."""
    meta = spec.meta
    sections: list[str] = [
        f'Build a Next.js application named "{meta.name}".',
        "",
    ]
    if meta.description:
        sections.append(f"Description: {meta.description}")
    sections.extend(
        [
            f"App Slug: {meta.slug}",
            f"App ID: {spec.id}",
            f"Organization ID: {meta.org_id}",
            "",
            "Application Pages:",
        ]
    )
    for page in spec.pages:
        sections.extend(_describe_page(page))
    sections.append("")

    extra = spec.model_extra or {}
    workflow = extra.get("workflow")
    if isinstance(workflow, dict) and workflow.get("states"):
        sections.append(f"Workflow states: {', '.join(workflow['states'])}")
        sections.append(f"Initial state: {workflow.get('initialState', workflow['states'][0])}")
        sections.append("")

    environments = extra.get("environments")
    if isinstance(environments, dict):
        sections.append("Deployment Environments:")
        for name in sorted(environments):
            env = environments[name] or {}
            sections.append(f"  - {name}: {env.get('domain', '')} (API: {env.get('apiUrl', '')})")
        sections.append("")

    sections.append(PROMPT_FOOTER)
    return "\n".join(sections)
